import ipaddress
import logging
import socket
from typing import Tuple, Union

from route_sim.errors import ConfigurationError

DEFAULT_PORT = 10110  # Standard port for NMEA 0183 over UDP
MULTICAST_TTL = 1


class UDPTransmitter:
    """
    Sends NMEA sentences as UDP datagrams to a single destination.

    The UDP socket is connectionless, so messages are sent regardless of
    whether anything is listening on the target host:port combination.
    Multicast and broadcast destinations get the socket options they need.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT):
        """
        Args:
            host: Destination address (unicast, multicast group or broadcast)
            port: Destination port. Defaults to 10110.

        Raises:
            ConfigurationError: if the address cannot be resolved
        """
        self.host = host
        self.port = port
        self.address = self._resolve(host, port)
        self.closed = False

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        destination = ipaddress.ip_address(self.address[0])
        if destination.is_multicast:
            self.sock.setsockopt(
                socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, MULTICAST_TTL
            )
        elif self.address[0] == "255.255.255.255" or host == "<broadcast>":
            self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)

        logging.info(f"UDP transmitter ready for {self.address[0]}:{self.address[1]}")

    @staticmethod
    def _resolve(host: str, port: int) -> Tuple[str, int]:
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise ConfigurationError(f"Invalid UDP port: {port}")
        if host == "<broadcast>":
            return "255.255.255.255", port
        try:
            infos = socket.getaddrinfo(
                host or "127.0.0.1", port, socket.AF_INET, socket.SOCK_DGRAM
            )
        except (socket.gaierror, UnicodeError) as e:
            raise ConfigurationError(
                f"Failed to resolve address {host}:{port}: {e}"
            ) from e
        return infos[0][4][0], infos[0][4][1]

    def send(self, data: Union[bytes, str]) -> int:
        """
        Send one datagram.

        Raises:
            OSError: if the socket write fails
        """
        if isinstance(data, str):
            data = data.encode("ascii")
        return self.sock.sendto(data, self.address)

    def close(self):
        """Close the socket"""
        if not self.closed:
            self.closed = True
            self.sock.close()
