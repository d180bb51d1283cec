"""Utility functions for coordinate handling and thread synchronisation."""

from .coordinate_utils import (
    EARTH_RADIUS_NM,
    parse_coordinate,
    calculate_distance,
    calculate_bearing,
    calculate_destination,
    calculate_cross_track_error,
)
from .rwlock import ReadWriteLock

__all__ = [
    "EARTH_RADIUS_NM",
    "parse_coordinate",
    "calculate_distance",
    "calculate_bearing",
    "calculate_destination",
    "calculate_cross_track_error",
    "ReadWriteLock",
]
