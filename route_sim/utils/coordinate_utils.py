import math
import re
from typing import Tuple, Union

EARTH_RADIUS_NM = 3440.065  # Earth's radius in nautical miles


def parse_coordinate(coord: Union[str, float, int]) -> float:
    """
    Parse coordinate string in various formats or return numeric value.
    Supports:
    - Decimal degrees (123.456)
    - Degrees decimal minutes ("37° 40.3574' N" or "37 40.3574 N")
    - Basic directional ("122° W" or "122 W")

    Args:
        coord: Coordinate as string or number

    Returns:
        float: Decimal degrees (negative for West/South)
    """
    if isinstance(coord, bool):
        raise ValueError(f"Unable to parse coordinate: {coord}")
    if isinstance(coord, (float, int)):
        return float(coord)

    # Remove special characters and extra spaces
    clean_coord = coord.replace("°", " ").replace("'", " ").replace('"', " ")
    clean_coord = " ".join(clean_coord.split())

    try:
        # Check for directional format first
        match = re.match(r"^(-?\d+\.?\d*)\s*([NSEW])$", clean_coord)
        if match:
            value = float(match.group(1))
            direction = match.group(2)
            return -value if direction in ["W", "S"] else value

        # Check for degrees decimal minutes format
        match = re.match(r"^(-?\d+)\s+(\d+\.?\d*)\s*([NSEW])$", clean_coord)
        if match:
            degrees = float(match.group(1))
            minutes = float(match.group(2))
            direction = match.group(3)
            value = degrees + minutes / 60
            return -value if direction in ["W", "S"] else value

        return float(clean_coord)

    except (ValueError, AttributeError) as e:
        raise ValueError(f"Unable to parse coordinate: {coord}") from e


def normalize_bearing(bearing: float) -> float:
    """Normalize an angle in degrees to [0, 360)"""
    bearing = bearing % 360.0
    # -1e-17 % 360 rounds up to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def normalize_longitude(lon: float) -> float:
    """Normalize a longitude in degrees to (-180, 180]"""
    if lon > 180.0:
        lon -= 360.0
    elif lon <= -180.0:
        lon += 360.0
    return lon


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate great-circle (haversine) distance between two points in nautical miles"""
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_NM * c


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate initial true bearing from point 1 to point 2, in [0, 360)"""
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])
    dlon = lon2 - lon1
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(
        dlon
    )
    bearing = math.degrees(math.atan2(y, x))
    return normalize_bearing(bearing)


def calculate_destination(
    lat: float, lon: float, bearing: float, distance: float
) -> Tuple[float, float]:
    """
    Calculate the point reached by travelling along a great circle.

    Args:
        lat: Start latitude in decimal degrees
        lon: Start longitude in decimal degrees
        bearing: Initial bearing in degrees true
        distance: Distance travelled in nautical miles

    Returns:
        Tuple[float, float]: (latitude, longitude) with longitude in (-180, 180]
    """
    lat_rad = math.radians(lat)
    lon_rad = math.radians(lon)
    bearing_rad = math.radians(bearing)
    angular_distance = distance / EARTH_RADIUS_NM

    new_lat_rad = math.asin(
        math.sin(lat_rad) * math.cos(angular_distance)
        + math.cos(lat_rad) * math.sin(angular_distance) * math.cos(bearing_rad)
    )
    new_lon_rad = lon_rad + math.atan2(
        math.sin(bearing_rad) * math.sin(angular_distance) * math.cos(lat_rad),
        math.cos(angular_distance) - math.sin(lat_rad) * math.sin(new_lat_rad),
    )

    return math.degrees(new_lat_rad), normalize_longitude(math.degrees(new_lon_rad))


def calculate_cross_track_error(
    start_lat: float,
    start_lon: float,
    end_lat: float,
    end_lon: float,
    current_lat: float,
    current_lon: float,
) -> float:
    """
    Calculate signed cross track error of a position against a route leg.

    Uses asin(sin(d13/R) * sin(θ13 - θ12)) * R where d13/θ13 are the distance
    and bearing from the leg start to the current position and θ12 is the
    bearing of the leg itself.

    Args:
        start_lat: Leg start latitude in decimal degrees
        start_lon: Leg start longitude in decimal degrees
        end_lat: Leg end latitude in decimal degrees
        end_lon: Leg end longitude in decimal degrees
        current_lat: Current position latitude in decimal degrees
        current_lon: Current position longitude in decimal degrees

    Returns:
        float: XTE in nautical miles, positive when right of the intended track
    """
    d13 = calculate_distance(start_lat, start_lon, current_lat, current_lon)
    bearing13 = math.radians(
        calculate_bearing(start_lat, start_lon, current_lat, current_lon)
    )
    bearing12 = math.radians(calculate_bearing(start_lat, start_lon, end_lat, end_lon))

    return (
        math.asin(math.sin(d13 / EARTH_RADIUS_NM) * math.sin(bearing13 - bearing12))
        * EARTH_RADIUS_NM
    )
