"""Exceptions raised by the GPS route simulator."""


class SimulatorError(Exception):
    """Base class for all simulator errors"""


class ConfigurationError(SimulatorError, ValueError):
    """Invalid configuration: bad address, bad value, unusable route file"""


class RouteError(ConfigurationError):
    """Route data could not be turned into a usable route"""


class RouteParseError(RouteError):
    """Route file is not well-formed RTZ XML"""


class RouteEmptyError(RouteError):
    """Route contains no waypoints"""


class AlreadyRunningError(SimulatorError, RuntimeError):
    """start() called while the simulator is already running"""


class SessionError(SimulatorError):
    """Session command issued in the wrong mode or with nothing running"""
