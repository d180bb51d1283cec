from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union

from route_sim.errors import RouteEmptyError, RouteError


@dataclass(frozen=True)
class Waypoint:
    """Single waypoint in a route"""

    id: str
    lat: float  # Latitude in decimal degrees
    lon: float  # Longitude in decimal degrees
    name: Optional[str] = None


WaypointLike = Union[Waypoint, Sequence]


@dataclass(frozen=True)
class Route:
    """Ordered, immutable sequence of waypoints"""

    waypoints: Tuple[Waypoint, ...]
    name: Optional[str] = None

    def __post_init__(self):
        if not self.waypoints:
            raise RouteEmptyError("Route must contain at least one waypoint")

    @classmethod
    def from_waypoints(
        cls, waypoints: Iterable[WaypointLike], name: Optional[str] = None
    ) -> "Route":
        """
        Build a route from waypoints or (id, lat, lon) tuples.

        Raises:
            RouteEmptyError: if no waypoints are given
            RouteError: if an entry is not a waypoint or (id, lat, lon) tuple
        """
        parsed = []
        for wp in waypoints:
            if isinstance(wp, Waypoint):
                parsed.append(wp)
                continue
            try:
                wp_id, lat, lon = wp
                parsed.append(Waypoint(id=str(wp_id), lat=float(lat), lon=float(lon)))
            except (TypeError, ValueError) as e:
                raise RouteError(f"Invalid waypoint {wp!r}: {e}") from e
        return cls(waypoints=tuple(parsed), name=name)

    def __len__(self) -> int:
        return len(self.waypoints)

    def __getitem__(self, index: int) -> Waypoint:
        return self.waypoints[index]

    @property
    def last_index(self) -> int:
        return len(self.waypoints) - 1


@dataclass(frozen=True)
class WaypointInfo:
    """Route progress as seen by the caller"""

    current_waypoint: int  # Index of the target waypoint
    total_waypoints: int
    auto_navigate: bool
    distance_to_target: float  # Nautical miles, 0 when no route is loaded
    target_waypoint: Optional[Waypoint] = None
