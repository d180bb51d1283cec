from dataclasses import dataclass, field
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(UTC)


@dataclass(frozen=True)
class Position:
    """Vessel position at a point in time"""

    lat: float  # Latitude in decimal degrees
    lon: float  # Longitude in decimal degrees
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class NavigationState:
    """
    Snapshot of everything the simulated GPS receiver reports.

    The quality fields (fix quality, satellites, HDOP, altitude) are static
    simulated values fixed when the simulator is created.
    """

    position: Position = field(default_factory=lambda: Position(0.0, 0.0))
    speed: float = 0.0  # Speed over ground in knots
    course: float = 0.0  # Course over ground in degrees true
    magnetic_variation: float = 0.0  # Degrees, positive East
    fix_quality: int = 1  # 0 = invalid, 1 = GPS fix, 2 = DGPS fix
    satellites: int = 8
    hdop: float = 1.2
    altitude: float = 0.0  # Meters above mean sea level
