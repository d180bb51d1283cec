import os
import socket
import tempfile
import threading
import unittest

from route_sim import __version__
from route_sim.errors import ConfigurationError, SessionError
from route_sim.session import (
    ManualConfig,
    NetworkSettings,
    RouteConfig,
    SimulationMode,
    SimulationSession,
)

RTZ = b"""<?xml version="1.0" encoding="UTF-8"?>
<route xmlns="http://www.cirm.org/RTZ/1/0" version="1.0">
  <routeInfo routeName="Harbour Loop"/>
  <waypoints>
    <waypoint id="1"><position lat="50.0" lon="-1.0"/></waypoint>
    <waypoint id="2"><position lat="50.0" lon="-0.9"/></waypoint>
    <waypoint id="3"><position lat="50.1" lon="-0.9"/></waypoint>
  </waypoints>
</route>
"""


class SessionTestCase(unittest.TestCase):
    def setUp(self):
        # Sink for the datagrams so nothing leaves the host
        self.sink = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sink.bind(("127.0.0.1", 0))
        self.addCleanup(self.sink.close)

        self.settings = NetworkSettings(
            host="127.0.0.1", port=self.sink.getsockname()[1], transmit_rate=0.1
        )
        self.session = SimulationSession(self.settings)
        self.addCleanup(self.session.shutdown)

        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.route_file = os.path.join(tmpdir.name, "loop.rtz")
        with open(self.route_file, "wb") as f:
            f.write(RTZ)


class TestManualMode(SessionTestCase):
    def test_start_manual(self):
        self.session.start_manual(ManualConfig(50.5, -1.5, speed=8.0, course=45.0))
        status = self.session.status()
        self.assertTrue(status.is_running)
        self.assertEqual(status.mode, SimulationMode.MANUAL)
        self.assertEqual((status.position.lat, status.position.lon), (50.5, -1.5))
        self.assertEqual((status.speed, status.course), (8.0, 45.0))
        self.assertIsNone(status.route)
        self.assertIsNone(status.waypoint_status)
        self.assertEqual(self.session.simulator.get_state().magnetic_variation, -5.0)

    def test_start_twice(self):
        self.session.start_manual(ManualConfig(0.0, 0.0))
        with self.assertRaises(SessionError):
            self.session.start_manual(ManualConfig(1.0, 1.0))
        with self.assertRaises(SessionError):
            self.session.start_route(RouteConfig(self.route_file))

    def test_concurrent_starts(self):
        """Only one of several simultaneous starts wins"""
        barrier = threading.Barrier(6)
        results = []

        def start(lat):
            barrier.wait()
            try:
                self.session.start_manual(ManualConfig(lat, 0.0, speed=1.0))
                results.append("started")
            except SessionError:
                results.append("rejected")

        threads = [threading.Thread(target=start, args=(float(i),)) for i in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10.0)

        self.assertEqual(sorted(results), ["rejected"] * 5 + ["started"])
        self.assertTrue(self.session.simulator.is_running())

    def test_stop_and_restart(self):
        self.session.start_manual(ManualConfig(10.0, 10.0, speed=5.0))
        first = self.session.simulator
        self.session.stop()
        self.assertFalse(self.session.is_running)
        self.assertFalse(first.is_running())
        # Final state is still available
        self.assertEqual(self.session.status().position.lat, 10.0)

        with self.assertRaises(SessionError):
            self.session.stop()

        self.session.start_manual(ManualConfig(20.0, 20.0))
        self.assertIsNot(self.session.simulator, first)
        self.assertTrue(first.transmitter.closed)

    def test_commands_need_running_simulation(self):
        with self.assertRaises(SessionError):
            self.session.update_speed(5.0)
        with self.assertRaises(SessionError):
            self.session.update_course(90.0)
        with self.assertRaises(SessionError):
            self.session.pause()

    def test_speed_and_course(self):
        self.session.start_manual(ManualConfig(0.0, 0.0, speed=5.0, course=10.0))
        self.session.update_speed(9.0)
        self.session.update_course(180.0)
        status = self.session.status()
        self.assertEqual((status.speed, status.course), (9.0, 180.0))

    def test_pause_and_resume(self):
        self.session.start_manual(ManualConfig(0.0, 0.0, speed=6.0))
        self.session.pause()
        self.assertEqual(self.session.status().speed, 0.0)
        self.session.resume()
        self.assertEqual(self.session.status().speed, 6.0)

        with self.assertRaises(SessionError):
            self.session.resume()
        self.session.resume(speed=3.5)
        self.assertEqual(self.session.status().speed, 3.5)

    def test_waypoint_commands_need_route_mode(self):
        self.session.start_manual(ManualConfig(0.0, 0.0))
        with self.assertRaises(SessionError):
            self.session.advance_waypoint()
        with self.assertRaises(SessionError):
            self.session.waypoint_status()

    def test_explicit_variation(self):
        self.settings.magnetic_variation = 2.5
        self.session.start_manual(ManualConfig(0.0, 0.0))
        self.assertEqual(self.session.simulator.get_state().magnetic_variation, 2.5)


class TestRouteMode(SessionTestCase):
    def test_start_route(self):
        self.session.start_route(RouteConfig(self.route_file, speed=10.0))
        status = self.session.status()
        self.assertEqual(status.mode, SimulationMode.ROUTE)
        self.assertEqual(status.route.name, "Harbour Loop")
        self.assertEqual(len(status.route), 3)
        self.assertEqual((status.position.lat, status.position.lon), (50.0, -1.0))
        self.assertEqual(status.speed, 10.0)
        self.assertEqual(status.waypoint_status.current_waypoint, 1)
        self.assertEqual(self.session.simulator.get_state().magnetic_variation, -3.0)

    def test_waypoint_navigation(self):
        self.session.start_route(RouteConfig(self.route_file, speed=10.0))
        with self.assertRaises(SessionError):
            self.session.previous_waypoint()

        self.session.advance_waypoint()
        self.assertEqual(self.session.waypoint_status().current_waypoint, 2)
        self.session.previous_waypoint()
        self.assertEqual(self.session.waypoint_status().current_waypoint, 1)

        with self.assertRaises(SessionError):
            self.session.set_waypoint(5)
        self.session.set_waypoint(2)
        self.assertEqual(self.session.waypoint_status().target_waypoint.id, "3")

        self.session.advance_waypoint()
        with self.assertRaises(SessionError):
            self.session.advance_waypoint()

    def test_bad_route_file_keeps_previous_simulator(self):
        self.session.start_manual(ManualConfig(1.0, 2.0))
        self.session.stop()
        previous = self.session.simulator

        with self.assertRaises(ConfigurationError):
            self.session.start_route(RouteConfig(self.route_file + ".missing"))
        self.assertIs(self.session.simulator, previous)
        self.assertFalse(previous.transmitter.closed)
        self.assertFalse(self.session.is_running)


class TestSessionInfo(SessionTestCase):
    def test_status_without_simulator(self):
        status = self.session.status()
        self.assertFalse(status.is_running)
        self.assertEqual((status.position.lat, status.position.lon), (0.0, 0.0))
        self.assertEqual(status.speed, 0.0)

    def test_simulator_info(self):
        info = self.session.simulator_info()
        self.assertEqual(info["version"], __version__)
        self.assertEqual(info["port"], self.settings.port)
        self.assertEqual(info["protocol"], "UDP")
        self.assertEqual(info["format"], "NMEA 0183")
        self.assertEqual(info["sentences"], ["GGA", "RMC", "GLL", "VTG", "GSA", "GSV"])

    def test_shutdown(self):
        self.session.start_manual(ManualConfig(0.0, 0.0))
        simulator = self.session.simulator
        self.session.shutdown()
        self.assertIsNone(self.session.simulator)
        self.assertFalse(self.session.is_running)
        self.assertFalse(simulator.is_running())
        self.assertTrue(simulator.transmitter.closed)


if __name__ == "__main__":
    unittest.main()
