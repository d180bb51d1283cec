"""Models module containing core data structures."""

from .navigation_state import NavigationState, Position, utc_now
from .route import Route, Waypoint, WaypointInfo

__all__ = ["NavigationState", "Position", "utc_now", "Route", "Waypoint", "WaypointInfo"]
