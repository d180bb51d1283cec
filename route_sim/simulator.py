import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional, Union

from route_sim.errors import (
    AlreadyRunningError,
    ConfigurationError,
    SimulatorError,
)
from route_sim.models.navigation_state import NavigationState, Position, utc_now
from route_sim.models.route import Route, WaypointInfo, WaypointLike
from route_sim.services.rtz_parser import parse_rtz
from route_sim.services.sentence_encoder import SentenceEncoder
from route_sim.services.transport import DEFAULT_PORT, UDPTransmitter
from route_sim.utils.coordinate_utils import (
    calculate_bearing,
    calculate_cross_track_error,
    calculate_destination,
    calculate_distance,
    normalize_bearing,
)
from route_sim.utils.rwlock import ReadWriteLock


@dataclass
class SimulatorConfig:
    """Network and environment settings for a simulator instance"""

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    transmit_rate: float = 1.0  # Seconds between sentence bursts
    magnetic_variation: float = 0.0  # Degrees, positive East


class GPSSimulator:
    """
    Simulated marine GPS receiver.

    Moves a vessel along its course, or along a loaded route, once per second
    and broadcasts GGA, RMC, GLL, VTG, GSA and GSV sentences over UDP at the
    configured rate. Both run on background threads between start() and
    stop(); every public method may be called from any thread meanwhile.
    """

    POSITION_UPDATE_INTERVAL = 1.0  # seconds
    WAYPOINT_THRESHOLD = 0.02  # nautical miles to consider waypoint reached
    XTE_GAIN = 10.0  # degrees of correction per nautical mile off track
    MAX_XTE_CORRECTION = 30.0  # degrees
    THREAD_JOIN_TIMEOUT = 5.0  # seconds

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        transmitter: Optional[UDPTransmitter] = None,
        encoder: Optional[SentenceEncoder] = None,
    ):
        """
        Initialize simulator state and open the UDP transmitter.

        Args:
            config: Network and environment settings
            transmitter: Pre-built transmitter; created from config if omitted
            encoder: Sentence encoder; a "GP" talker encoder if omitted

        Raises:
            ConfigurationError: on an invalid transmit rate or unresolvable address
        """
        config = config or SimulatorConfig()
        if config.transmit_rate <= 0:
            raise ConfigurationError(
                f"Transmit rate must be positive, got {config.transmit_rate}"
            )

        self.config = config
        self.transmitter = transmitter or UDPTransmitter(config.host, config.port)
        self.encoder = encoder or SentenceEncoder()

        self._lock = ReadWriteLock()
        self._state = NavigationState(
            position=Position(0.0, 0.0),
            magnetic_variation=config.magnetic_variation,
        )

        # Route state
        self._route: Optional[Route] = None
        self._current_waypoint = 0  # Index of the waypoint being steered for
        self._auto_navigate = False

        # Thread state
        self._running = False
        self._closed = False
        self._stop_event = threading.Event()
        self._threads = []

    def __enter__(self) -> "GPSSimulator":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    # ------------------------------------------------------------------
    # Manual control

    def set_position(self, lat: float, lon: float, speed: float, course: float):
        """Set the current position, speed and course"""
        with self._lock.write_locked():
            self._state = replace(
                self._state,
                position=Position(lat, lon, utc_now()),
                speed=speed,
                course=course,
            )

    def update_speed(self, speed: float):
        """Set speed over ground in knots"""
        with self._lock.write_locked():
            self._state = replace(self._state, speed=speed)

    def update_course(self, course: float):
        """Set course over ground in degrees true"""
        with self._lock.write_locked():
            self._state = replace(self._state, course=course)

    # ------------------------------------------------------------------
    # Routes

    def load_route(self, rtz_data: Union[bytes, str], initial_speed: float):
        """
        Load a route from RTZ XML data and place the vessel on its first waypoint.

        Raises:
            RouteParseError: if the data is not valid RTZ
            RouteEmptyError: if the route has no waypoints
        """
        self._install_route(parse_rtz(rtz_data), initial_speed)

    def load_waypoints(
        self,
        waypoints: Iterable[WaypointLike],
        initial_speed: float,
        name: Optional[str] = None,
    ):
        """
        Load a route from Waypoint objects or (id, lat, lon) tuples.

        Raises:
            RouteEmptyError: if no waypoints are given
        """
        self._install_route(Route.from_waypoints(waypoints, name=name), initial_speed)

    def _install_route(self, route: Route, initial_speed: float):
        first = route[0]
        with self._lock.write_locked():
            course = self._state.course
            if len(route) > 1:
                course = calculate_bearing(
                    first.lat, first.lon, route[1].lat, route[1].lon
                )
                self._current_waypoint = 1
                self._auto_navigate = True
            else:
                # Already at the only waypoint
                self._current_waypoint = 0
                self._auto_navigate = False

            self._route = route
            self._state = replace(
                self._state,
                position=Position(first.lat, first.lon, utc_now()),
                speed=initial_speed,
                course=course,
            )

        logging.info(
            f"Loaded route '{route.name or 'unnamed'}' with {len(route)} waypoints, "
            f"initial speed {initial_speed:.1f}kts"
        )

    def advance_waypoint(self) -> bool:
        """
        Jump to the current target waypoint and steer for the next one.

        Advancing onto the last waypoint completes the route: auto-navigation
        stops and speed drops to zero.

        Returns:
            bool: False if no route is loaded or the route is already complete
        """
        with self._lock.write_locked():
            route = self._route
            if route is None or not self._auto_navigate:
                return False

            target = route[self._current_waypoint]
            position = Position(target.lat, target.lon, utc_now())
            if self._current_waypoint < route.last_index:
                self._current_waypoint += 1
                next_wp = route[self._current_waypoint]
                course = calculate_bearing(target.lat, target.lon, next_wp.lat, next_wp.lon)
                self._state = replace(self._state, position=position, course=course)
                message = f"Advanced to waypoint {target.id}, next {next_wp.id}"
            else:
                self._auto_navigate = False
                self._state = replace(self._state, position=position, speed=0.0)
                message = f"Advanced to final waypoint {target.id}, route complete"

        logging.info(message)
        return True

    def previous_waypoint(self) -> bool:
        """
        Step back one leg: move to the start of the previous leg and resume
        auto-navigation along it.

        Returns:
            bool: False if no route is loaded or already on the first leg
        """
        with self._lock.write_locked():
            route = self._route
            if route is None or self._current_waypoint <= 1:
                return False

            self._current_waypoint -= 1
            self._relocate_to_leg(route, self._current_waypoint)
            start = route[self._current_waypoint - 1]

        logging.info(f"Returned to waypoint {start.id}")
        return True

    def set_waypoint(self, index: int) -> bool:
        """
        Jump to the start of the leg ending at waypoint `index`.

        Returns:
            bool: False if no route is loaded or index is not in 1..len-1
        """
        with self._lock.write_locked():
            route = self._route
            if route is None or not 1 <= index < len(route):
                return False

            self._current_waypoint = index
            self._relocate_to_leg(route, index)

        logging.info(f"Jumped to leg {index - 1} -> {index}")
        return True

    def _relocate_to_leg(self, route: Route, target_index: int):
        # Caller holds the write lock
        start = route[target_index - 1]
        target = route[target_index]
        self._auto_navigate = True
        self._state = replace(
            self._state,
            position=Position(start.lat, start.lon, utc_now()),
            course=calculate_bearing(start.lat, start.lon, target.lat, target.lon),
        )

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self):
        """
        Start the position update and transmission threads.

        Raises:
            AlreadyRunningError: if the simulator is already running
            SimulatorError: if the simulator has been closed
        """
        with self._lock.write_locked():
            if self._closed:
                raise SimulatorError("Simulator has been closed")
            if self._running:
                raise AlreadyRunningError("Simulator is already running")

            # A fresh stop signal per run; the previous one stays set
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._running = True
            self._threads = [
                threading.Thread(
                    target=self._run_periodic,
                    args=(stop_event, self.POSITION_UPDATE_INTERVAL, self.update_position),
                    name="gps-position-update",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._run_periodic,
                    args=(
                        stop_event,
                        self.config.transmit_rate,
                        lambda: self.transmit_sentences(stop_event),
                    ),
                    name="gps-transmission",
                    daemon=True,
                ),
            ]
            for thread in self._threads:
                thread.start()

        logging.info(
            f"Simulator started, transmitting every {self.config.transmit_rate}s "
            f"to {self.transmitter.host}:{self.transmitter.port}"
        )

    def stop(self):
        """Stop both threads. Does nothing if the simulator is not running."""
        with self._lock.write_locked():
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            threads = self._threads
            self._threads = []

        current = threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join(timeout=self.THREAD_JOIN_TIMEOUT)
        logging.info("Simulator stopped")

    def close(self):
        """Stop the simulator and release the network socket"""
        self.stop()
        with self._lock.write_locked():
            if self._closed:
                return
            self._closed = True
        self.transmitter.close()

    @staticmethod
    def _run_periodic(
        stop_event: threading.Event, period: float, action: Callable[[], object]
    ):
        """
        Call action every period seconds until stop_event is set.
        An exception from one call is logged and the next tick still runs.
        """
        next_tick = time.monotonic() + period
        while not stop_event.wait(max(0.0, next_tick - time.monotonic())):
            try:
                action()
            except Exception:
                logging.exception(
                    f"Error in {threading.current_thread().name} loop, continuing"
                )
            next_tick += period
            now = time.monotonic()
            if next_tick < now:
                # Fell behind; skip the missed ticks
                next_tick = now + period

    # ------------------------------------------------------------------
    # Periodic work

    def update_position(self):
        """Advance the vessel by one second of travel at its current speed and course"""
        message = None
        with self._lock.write_locked():
            state = self._state
            if state.speed <= 0:
                return

            hours_elapsed = self.POSITION_UPDATE_INTERVAL / 3600.0
            distance = state.speed * hours_elapsed
            course = normalize_bearing(state.course)

            heading = course
            if self._auto_navigate and self._route is not None and self._current_waypoint > 0:
                heading = normalize_bearing(course + self._steering_correction(state.position))

            lat, lon = calculate_destination(
                state.position.lat, state.position.lon, heading, distance
            )
            self._state = replace(
                state, position=Position(lat, lon, utc_now()), course=course
            )

            if self._auto_navigate and self._route is not None:
                message = self._check_waypoint_proximity()

        if message:
            logging.info(message)

    def _steering_correction(self, position: Position) -> float:
        """Proportional heading correction back toward the current leg"""
        start = self._route[self._current_waypoint - 1]
        target = self._route[self._current_waypoint]
        xte = calculate_cross_track_error(
            start.lat, start.lon, target.lat, target.lon, position.lat, position.lon
        )
        correction = -xte * self.XTE_GAIN
        return max(-self.MAX_XTE_CORRECTION, min(self.MAX_XTE_CORRECTION, correction))

    def _check_waypoint_proximity(self) -> Optional[str]:
        """
        Move on to the next waypoint once the target is reached.
        Caller holds the write lock.

        Returns:
            Optional[str]: Log message describing what changed, if anything
        """
        route = self._route
        if self._current_waypoint >= len(route):
            return None

        target = route[self._current_waypoint]
        position = self._state.position
        distance = calculate_distance(position.lat, position.lon, target.lat, target.lon)
        if distance >= self.WAYPOINT_THRESHOLD:
            return None

        if self._current_waypoint < route.last_index:
            self._current_waypoint += 1
            next_wp = route[self._current_waypoint]
            course = calculate_bearing(position.lat, position.lon, next_wp.lat, next_wp.lon)
            self._state = replace(self._state, course=course)
            return (
                f"Reached waypoint {target.id}, steering {course:.1f}° "
                f"for waypoint {next_wp.id}"
            )

        self._auto_navigate = False
        self._state = replace(self._state, speed=0.0)
        return f"Reached final waypoint {target.id}, route complete"

    def transmit_sentences(self, stop_event: Optional[threading.Event] = None) -> int:
        """
        Send one burst of NMEA sentences for the current state.

        Each sentence is its own datagram. Send failures are logged and the
        remaining sentences are still sent. Once stop_event is set no further
        sentence goes out.

        Returns:
            int: Number of sentences sent
        """
        with self._lock.read_locked():
            state = self._state

        sent = 0
        for sentence_type, sentence in self.encoder.encode_sentences(state):
            if stop_event is not None and stop_event.is_set():
                break
            try:
                self.transmitter.send(sentence + "\r\n")
            except OSError as e:
                logging.warning(f"Failed to send {sentence_type} sentence: {e}")
                continue
            sent += 1
            logging.debug(f"Send NMEA 0183: '{sentence}'")
        return sent

    # ------------------------------------------------------------------
    # Queries

    def get_state(self) -> NavigationState:
        """Current navigation state snapshot"""
        with self._lock.read_locked():
            return self._state

    def get_route(self) -> Optional[Route]:
        """Loaded route, or None"""
        with self._lock.read_locked():
            return self._route

    def get_waypoint_info(self) -> WaypointInfo:
        """Route progress: target waypoint, distance to it, auto-navigation flag"""
        with self._lock.read_locked():
            route = self._route
            current = self._current_waypoint
            auto_navigate = self._auto_navigate
            position = self._state.position

        if route is None:
            return WaypointInfo(
                current_waypoint=0,
                total_waypoints=0,
                auto_navigate=False,
                distance_to_target=0.0,
            )

        target = route[current]
        return WaypointInfo(
            current_waypoint=current,
            total_waypoints=len(route),
            auto_navigate=auto_navigate,
            distance_to_target=calculate_distance(
                position.lat, position.lon, target.lat, target.lon
            ),
            target_waypoint=target,
        )

    def is_running(self) -> bool:
        with self._lock.read_locked():
            return self._running
