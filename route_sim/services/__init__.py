from .rtz_parser import RouteFileInfo, load_rtz_file, parse_rtz, validate_rtz_file
from .sentence_encoder import SentenceEncoder, calculate_checksum
from .transport import UDPTransmitter

__all__ = [
    "RouteFileInfo",
    "load_rtz_file",
    "parse_rtz",
    "validate_rtz_file",
    "SentenceEncoder",
    "calculate_checksum",
    "UDPTransmitter",
]
