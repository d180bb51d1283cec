import argparse
import logging
import time
from datetime import timedelta
from typing import Any, Dict, Optional, Union

import yaml

from route_sim.errors import ConfigurationError, SimulatorError
from route_sim.services.rtz_parser import validate_rtz_file
from route_sim.session import (
    ManualConfig,
    NetworkSettings,
    RouteConfig,
    SimulationSession,
)
from route_sim.utils.coordinate_utils import parse_coordinate


def parse_log_level(level_str: str) -> int:
    """Convert string log level to logging constant."""
    level_str = level_str.upper()
    levels = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    if level_str not in levels:
        raise ConfigurationError(
            f"Invalid log level: {level_str}. Must be one of {', '.join(levels.keys())}"
        )
    return levels[level_str]


def parse_timedelta(time_str: Union[str, int, float, None]) -> Optional[timedelta]:
    """Parse time string in format 'Xm' or 'Xs' (or a number of seconds) into timedelta."""
    if time_str is None or time_str == "":
        return None
    if isinstance(time_str, (int, float)) and not isinstance(time_str, bool):
        return timedelta(seconds=time_str)
    if not isinstance(time_str, str):
        raise ConfigurationError(f"Invalid time value: {time_str!r}")
    unit = time_str[-1].lower()
    try:
        value = float(time_str[:-1]) if unit in ("m", "s") else float(time_str)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid time format: {time_str}. Use 'm' for minutes or 's' for seconds"
        ) from e
    if unit == "m":
        return timedelta(minutes=value)
    return timedelta(seconds=value)


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return config


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {name}: {value!r}") from e


def create_network_settings(config: Dict[str, Any]) -> NetworkSettings:
    """Build network settings from the configuration dictionary."""
    transmit_rate = parse_timedelta(config.get("transmit_rate", "1s"))
    if transmit_rate is None or transmit_rate.total_seconds() <= 0:
        raise ConfigurationError(
            f"Invalid transmit rate: {config.get('transmit_rate')!r}"
        )

    variation = config.get("magnetic_variation")
    port = config.get("port", 10110)
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigurationError(f"Invalid port: {port!r}")

    return NetworkSettings(
        host=config.get("host") or "127.0.0.1",
        port=port,
        transmit_rate=transmit_rate.total_seconds(),
        magnetic_variation=(
            None if variation is None else _as_float(variation, "magnetic variation")
        ),
    )


def create_manual_config(manual: Dict[str, Any]) -> ManualConfig:
    """Create manual mode parameters from the 'manual' config section."""
    position = manual.get("position")
    if not isinstance(position, dict) or "lat" not in position or "lon" not in position:
        raise ConfigurationError("Manual mode needs 'position' with 'lat' and 'lon'")

    try:
        lat = parse_coordinate(position["lat"])
        lon = parse_coordinate(position["lon"])
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if not -90 <= lat <= 90:
        raise ConfigurationError(f"Latitude out of range: {lat}")
    if not -180 <= lon <= 180:
        raise ConfigurationError(f"Longitude out of range: {lon}")

    speed = _as_float(manual.get("speed", 0.0), "speed")
    if speed < 0:
        raise ConfigurationError(f"Speed must not be negative: {speed}")

    return ManualConfig(
        lat=lat,
        lon=lon,
        speed=speed,
        course=_as_float(manual.get("course", 0.0), "course") % 360,
    )


def create_route_config(route: Dict[str, Any]) -> RouteConfig:
    """Create route mode parameters from the 'route' config section."""
    if not route.get("file"):
        raise ConfigurationError("Route mode needs a route 'file'")
    speed = _as_float(route.get("speed", 0.0), "speed")
    if speed < 0:
        raise ConfigurationError(f"Speed must not be negative: {speed}")
    return RouteConfig(file_path=str(route["file"]), speed=speed)


def log_status(session: SimulationSession):
    """Log current simulation state"""
    status = session.status()
    message = (
        f"Position: {status.position.lat:.6f}, {status.position.lon:.6f}. "
        f"Course: {status.course:.1f}°. SOG: {status.speed:.1f}kts"
    )
    info = status.waypoint_status
    if info is not None and info.target_waypoint is not None:
        message += (
            f". Waypoint {info.current_waypoint}/{info.total_waypoints - 1} "
            f"({info.target_waypoint.id}) at {info.distance_to_target:.3f}nm"
        )
        if not info.auto_navigate:
            message += ", route complete"
    logging.info(message)


def run(
    session: SimulationSession,
    duration: Optional[timedelta],
    status_interval: timedelta,
):
    """Keep the simulation running until the duration elapses or Ctrl-C."""
    start_time = time.monotonic()
    last_status = start_time
    try:
        while True:
            now = time.monotonic()
            if duration is not None and now - start_time >= duration.total_seconds():
                logging.info("Simulation duration reached")
                break
            if now - last_status >= status_interval.total_seconds():
                log_status(session)
                last_status = now
            time.sleep(0.1)
    except KeyboardInterrupt:
        logging.info("Simulation stopped by user")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NMEA 0183 GPS Route Simulator")
    parser.add_argument("--config", help="Path to YAML configuration file")
    # Optional command-line overrides
    parser.add_argument("--host", help="Override destination address for UDP messages")
    parser.add_argument(
        "--port", type=int, help="Override port number for UDP messages"
    )
    parser.add_argument(
        "--mode", choices=["manual", "route"], help="Override simulation mode"
    )
    parser.add_argument("--route-file", help="Override RTZ route file (route mode)")
    parser.add_argument("--speed", type=float, help="Override vessel speed in knots")
    parser.add_argument(
        "--loglevel",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override logging level",
    )
    parser.add_argument(
        "--duration",
        help="Override simulation duration (e.g., '30s', '5m')",
    )
    parser.add_argument(
        "--validate",
        metavar="RTZ_FILE",
        help="Validate an RTZ route file, print a summary and exit",
    )
    return parser


def apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Command-line arguments override config file"""
    if args.host:
        config["host"] = args.host
    if args.port:
        config["port"] = args.port
    if args.mode:
        config["mode"] = args.mode
    if args.loglevel:
        config["loglevel"] = args.loglevel
    if args.duration:
        config["duration"] = args.duration
    if args.route_file:
        config.setdefault("route", {})["file"] = args.route_file
    if args.speed is not None:
        section = "route" if config.get("mode") == "route" else "manual"
        config.setdefault(section, {})["speed"] = args.speed
    return config


def print_route_summary(file_path: str):
    info = validate_rtz_file(file_path)
    print(f"File:            {info.file_path} ({info.file_size} bytes)")
    print(f"RTZ version:     {info.version or '-'}")
    print(f"Route name:      {info.route_name or '-'}")
    print(f"Vessel:          {info.vessel_name or '-'} (IMO {info.vessel_imo or '-'})")
    print(f"Waypoints:       {info.waypoint_count} ({info.valid_positions} with positions)")
    for label, wp in (("First", info.first_waypoint), ("Last", info.last_waypoint)):
        if wp is not None:
            print(f"{label + ' waypoint:':<17}{wp.id} {wp.name or ''} {wp.lat:.6f}, {wp.lon:.6f}")


def main(argv=None) -> int:
    """Run the GPS simulator with YAML configuration"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        if args.validate:
            print_route_summary(args.validate)
            return 0

        config = load_config(args.config) if args.config else {}
        config = apply_overrides(config, args)

        logging.getLogger().setLevel(parse_log_level(config.get("loglevel", "INFO")))

        duration = parse_timedelta(config.get("duration"))
        status_interval = parse_timedelta(
            config.get("status_interval", "10s")
        ) or timedelta(seconds=10)
        settings = create_network_settings(config)
        mode = config.get("mode", "manual")

        session = SimulationSession(settings)
        if mode == "manual":
            session.start_manual(create_manual_config(config.get("manual") or {}))
        elif mode == "route":
            session.start_route(create_route_config(config.get("route") or {}))
        else:
            raise ConfigurationError(f"Invalid mode: {mode}. Must be 'manual' or 'route'")
    except SimulatorError as e:
        logging.error(str(e))
        return 1

    logging.info("Starting simulation...")
    try:
        log_status(session)
        run(session, duration, status_interval)
    finally:
        session.shutdown()
    return 0
