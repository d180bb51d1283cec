"""
GPS Route Simulator
Simulates a marine GPS receiver that follows a course or an RTZ route and
broadcasts NMEA 0183 sentences over UDP.
"""

__version__ = "1.0.0"

from .simulator import GPSSimulator, SimulatorConfig
from .session import SimulationSession, ManualConfig, RouteConfig
from .models import NavigationState, Position, Route, Waypoint, WaypointInfo

# Export main classes for easier imports
__all__ = [
    "GPSSimulator",
    "SimulatorConfig",
    "SimulationSession",
    "ManualConfig",
    "RouteConfig",
    "NavigationState",
    "Position",
    "Route",
    "Waypoint",
    "WaypointInfo",
]
