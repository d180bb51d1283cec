"""
Simulation session: one simulator at a time, started either from a fixed
position (manual mode) or from an RTZ route file (route mode).
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from route_sim import __version__
from route_sim.errors import SessionError
from route_sim.models.navigation_state import Position
from route_sim.models.route import Route, WaypointInfo
from route_sim.services.rtz_parser import load_rtz_file
from route_sim.services.sentence_encoder import SentenceEncoder
from route_sim.services.transport import DEFAULT_PORT
from route_sim.simulator import GPSSimulator, SimulatorConfig


class SimulationMode(Enum):
    """How the vessel is driven"""

    MANUAL = "manual"
    ROUTE = "route"


# Magnetic variation used when the caller does not give one
DEFAULT_VARIATION = {
    SimulationMode.MANUAL: -5.0,
    SimulationMode.ROUTE: -3.0,
}


@dataclass
class ManualConfig:
    """Start parameters for manual mode"""

    lat: float
    lon: float
    speed: float = 0.0
    course: float = 0.0


@dataclass
class RouteConfig:
    """Start parameters for route mode"""

    file_path: str
    speed: float = 0.0


@dataclass
class SimulationStatus:
    """Everything a front end needs to draw the current simulation"""

    is_running: bool
    mode: SimulationMode
    position: Position
    speed: float
    course: float
    route: Optional[Route] = None
    waypoint_status: Optional[WaypointInfo] = None


@dataclass
class NetworkSettings:
    """Where sentences are sent and how often"""

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    transmit_rate: float = 1.0
    magnetic_variation: Optional[float] = None  # None = mode default


class SimulationSession:
    """
    Creates, drives and tears down simulators for a front end or CLI.

    Every command runs under one lock, so a mode change or start cannot
    interleave with another command issued from a different thread.
    """

    def __init__(self, settings: Optional[NetworkSettings] = None):
        self.settings = settings or NetworkSettings()
        self.simulator: Optional[GPSSimulator] = None
        self.mode = SimulationMode.MANUAL
        self.is_running = False
        self._paused_speed: Optional[float] = None
        self._lock = threading.RLock()

    def _new_simulator(self, mode: SimulationMode) -> GPSSimulator:
        # Caller holds the session lock
        if self.simulator is not None:
            self.simulator.close()
            self.simulator = None

        variation = self.settings.magnetic_variation
        if variation is None:
            variation = DEFAULT_VARIATION[mode]

        return GPSSimulator(
            SimulatorConfig(
                host=self.settings.host,
                port=self.settings.port,
                transmit_rate=self.settings.transmit_rate,
                magnetic_variation=variation,
            )
        )

    def start_manual(self, config: ManualConfig):
        """
        Start a simulation from a fixed position, speed and course.

        Raises:
            SessionError: if a simulation is already running
            ConfigurationError: if the network settings are invalid
        """
        with self._lock:
            if self.is_running:
                raise SessionError("Simulation is already running")

            simulator = self._new_simulator(SimulationMode.MANUAL)
            self.simulator = simulator
            simulator.set_position(config.lat, config.lon, config.speed, config.course)
            simulator.start()

            self.is_running = True
            self.mode = SimulationMode.MANUAL
            self._paused_speed = None

        logging.info(
            f"Manual simulation started at {config.lat:.6f}, {config.lon:.6f}, "
            f"{config.speed:.1f}kts, {config.course:.1f}°"
        )

    def start_route(self, config: RouteConfig):
        """
        Start a simulation that follows the route in an RTZ file.

        Raises:
            SessionError: if a simulation is already running
            ConfigurationError: if the file cannot be read or parsed
        """
        with self._lock:
            if self.is_running:
                raise SessionError("Simulation is already running")

            # Parse first so a bad file leaves the previous simulator alone
            route = load_rtz_file(config.file_path)

            simulator = self._new_simulator(SimulationMode.ROUTE)
            self.simulator = simulator
            simulator.load_waypoints(route.waypoints, config.speed, name=route.name)
            simulator.start()

            self.is_running = True
            self.mode = SimulationMode.ROUTE
            self._paused_speed = None

        logging.info(f"Route simulation started from {config.file_path}")

    def stop(self):
        """
        Stop the running simulation. The simulator is kept so its final state
        can still be queried.

        Raises:
            SessionError: if no simulation is running
        """
        with self._lock:
            if not self.is_running:
                raise SessionError("No simulation is running")

            if self.simulator is not None:
                self.simulator.stop()
            self.is_running = False

    def shutdown(self):
        """Stop and release the simulator, if any"""
        with self._lock:
            if self.simulator is not None:
                self.simulator.close()
                self.simulator = None
            self.is_running = False

    def _running_simulator(self) -> GPSSimulator:
        # Caller holds the session lock
        if not self.is_running or self.simulator is None:
            raise SessionError("No simulation is running")
        return self.simulator

    def _route_simulator(self) -> GPSSimulator:
        simulator = self._running_simulator()
        if self.mode != SimulationMode.ROUTE:
            raise SessionError("Waypoint navigation only available in route mode")
        return simulator

    def update_speed(self, speed: float):
        with self._lock:
            self._running_simulator().update_speed(speed)
            self._paused_speed = None

    def update_course(self, course: float):
        with self._lock:
            self._running_simulator().update_course(course)

    def pause(self):
        """Hold the vessel in place by setting its speed to zero"""
        with self._lock:
            simulator = self._running_simulator()
            speed = simulator.get_state().speed
            if speed > 0:
                self._paused_speed = speed
            simulator.update_speed(0.0)

    def resume(self, speed: Optional[float] = None):
        """
        Resume after pause(), at the given speed or the speed before pausing.

        Raises:
            SessionError: if no speed is given and none was saved by pause()
        """
        with self._lock:
            simulator = self._running_simulator()
            if speed is None:
                speed = self._paused_speed
            if speed is None:
                raise SessionError("No speed to resume at")
            simulator.update_speed(speed)
            self._paused_speed = None

    def advance_waypoint(self):
        with self._lock:
            if not self._route_simulator().advance_waypoint():
                raise SessionError(
                    "Cannot advance waypoint - already at last waypoint or no route loaded"
                )

    def previous_waypoint(self):
        with self._lock:
            if not self._route_simulator().previous_waypoint():
                raise SessionError(
                    "Cannot go to previous waypoint - already at first waypoint or no route loaded"
                )

    def set_waypoint(self, index: int):
        with self._lock:
            if not self._route_simulator().set_waypoint(index):
                raise SessionError(f"Invalid waypoint index {index} or no route loaded")

    def waypoint_status(self) -> WaypointInfo:
        with self._lock:
            return self._route_simulator().get_waypoint_info()

    def status(self) -> SimulationStatus:
        """Current status; usable whether or not a simulation is running"""
        with self._lock:
            simulator = self.simulator
            is_running = self.is_running
            mode = self.mode

        if simulator is None:
            return SimulationStatus(
                is_running=is_running,
                mode=mode,
                position=Position(0.0, 0.0),
                speed=0.0,
                course=0.0,
            )

        state = simulator.get_state()
        route = simulator.get_route()
        waypoint_status = None
        if route is not None and mode == SimulationMode.ROUTE:
            waypoint_status = simulator.get_waypoint_info()

        return SimulationStatus(
            is_running=is_running,
            mode=mode,
            position=state.position,
            speed=state.speed,
            course=state.course,
            route=route,
            waypoint_status=waypoint_status,
        )

    def simulator_info(self) -> Dict[str, Any]:
        """Static description of what this simulator sends and where"""
        return {
            "version": __version__,
            "host": self.settings.host,
            "port": self.settings.port,
            "protocol": "UDP",
            "format": "NMEA 0183",
            "sentences": list(SentenceEncoder.SENTENCE_TYPES),
        }
