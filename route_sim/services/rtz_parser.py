"""
Parser for RTZ (IEC 61174 route exchange) files.

Only the parts the simulator needs are read: the route name from
<routeInfo>, and the id, name and position of each <waypoint>. Elements are
matched by local name, so files with or without the RTZ namespace are
accepted.
"""

import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from route_sim.errors import ConfigurationError, RouteEmptyError, RouteParseError
from route_sim.models.route import Route, Waypoint


@dataclass(frozen=True)
class RouteFileInfo:
    """Summary of an RTZ file, as reported by validate_rtz_file()"""

    version: str
    route_name: str
    vessel_name: str
    vessel_imo: str
    waypoint_count: int
    valid_positions: int
    file_size: int
    file_path: str
    first_waypoint: Optional[Waypoint] = None
    last_waypoint: Optional[Waypoint] = None


def _local_name(tag: str) -> str:
    """Strip the '{namespace}' prefix ElementTree puts on qualified tags"""
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            yield child


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    return next(_children(element, name), None)


def _parse_root(rtz_data: Union[bytes, str]) -> ET.Element:
    try:
        root = ET.fromstring(rtz_data)
    except ET.ParseError as e:
        raise RouteParseError(f"Failed to parse RTZ data: {e}") from e

    if _local_name(root.tag) != "route":
        raise RouteParseError(
            f"Not a valid RTZ route file - root element is '{_local_name(root.tag)}'"
        )
    return root


def _parse_float(value: Optional[str], attribute: str, waypoint_id: str) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except ValueError as e:
        raise RouteParseError(
            f"Waypoint '{waypoint_id}' has invalid {attribute}: '{value}'"
        ) from e


def _parse_waypoints(root: ET.Element) -> List[Waypoint]:
    waypoints_element = _child(root, "waypoints")
    if waypoints_element is None:
        return []

    waypoints = []
    for element in _children(waypoints_element, "waypoint"):
        wp_id = element.get("id", "")
        position = _child(element, "position")
        attrs = position.attrib if position is not None else {}
        waypoints.append(
            Waypoint(
                id=wp_id,
                lat=_parse_float(attrs.get("lat"), "latitude", wp_id),
                lon=_parse_float(attrs.get("lon"), "longitude", wp_id),
                name=element.get("name") or None,
            )
        )
    return waypoints


def parse_rtz(rtz_data: Union[bytes, str]) -> Route:
    """
    Parse RTZ XML into a route.

    Args:
        rtz_data: Raw RTZ file content

    Returns:
        Route: Waypoints in file order

    Raises:
        RouteParseError: if the data is not well-formed RTZ
        RouteEmptyError: if the file contains no waypoints
    """
    root = _parse_root(rtz_data)
    waypoints = _parse_waypoints(root)
    if not waypoints:
        raise RouteEmptyError("No waypoints found in RTZ file")

    route_info = _child(root, "routeInfo")
    route_name = route_info.get("routeName") if route_info is not None else None

    return Route(waypoints=tuple(waypoints), name=route_name or None)


def load_rtz_file(file_path: str) -> Route:
    """Read and parse an RTZ file from disk"""
    try:
        with open(file_path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ConfigurationError(f"Failed to read RTZ file {file_path}: {e}") from e
    return parse_rtz(data)


def validate_rtz_file(file_path: str) -> RouteFileInfo:
    """
    Check that a file is a usable RTZ route and summarise it.

    A file is valid when it parses, its root element is <route>, it has at
    least one waypoint and at least one waypoint has a non-zero position.

    Raises:
        ConfigurationError: if the file is missing or unreadable
        RouteParseError: if the file is not valid RTZ
        RouteEmptyError: if the file has no waypoints with a position
    """
    if not os.path.exists(file_path):
        raise ConfigurationError(f"File does not exist: {file_path}")

    try:
        with open(file_path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ConfigurationError(f"Failed to read file {file_path}: {e}") from e

    root = _parse_root(data)
    waypoints = _parse_waypoints(root)
    if not waypoints:
        raise RouteEmptyError("RTZ file contains no waypoints")

    valid_positions = sum(1 for wp in waypoints if wp.lat != 0 or wp.lon != 0)
    if valid_positions == 0:
        raise RouteEmptyError("RTZ file contains no valid waypoint positions")

    route_info = _child(root, "routeInfo")
    info_attrs = route_info.attrib if route_info is not None else {}

    info = RouteFileInfo(
        version=root.get("version", ""),
        route_name=info_attrs.get("routeName", ""),
        vessel_name=info_attrs.get("vesselName", ""),
        vessel_imo=info_attrs.get("vesselIMO", ""),
        waypoint_count=len(waypoints),
        valid_positions=valid_positions,
        file_size=len(data),
        file_path=file_path,
        first_waypoint=waypoints[0],
        last_waypoint=waypoints[-1] if len(waypoints) > 1 else None,
    )
    logging.debug(
        f"Validated RTZ file {file_path}: {info.waypoint_count} waypoints, "
        f"{info.valid_positions} with positions"
    )
    return info
