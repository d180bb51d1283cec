import logging
from datetime import datetime
from typing import Callable, Iterator, List, Tuple

from route_sim.models.navigation_state import NavigationState

KNOTS_TO_KMH = 1.852

# Satellites reported in GSA, and the constellation reported by GSV as
# (PRN, elevation, azimuth, SNR).
ACTIVE_SATELLITES = ["01", "02", "03", "04", "05", "06", "07", "08"]
PRN_SLOTS = 12
SIMULATED_CONSTELLATION = [
    ("01", 45, 45, 45),
    ("02", 30, 120, 42),
    ("03", 60, 180, 48),
    ("04", 15, 270, 35),
    ("05", 50, 300, 44),
    ("06", 25, 330, 38),
    ("07", 70, 10, 47),
    ("08", 10, 210, 30),
]
SATELLITES_PER_GSV = 4


def calculate_checksum(sentence: str) -> str:
    """
    Calculate NMEA checksum by XORing all characters between $ and *

    Args:
        sentence: NMEA sentence, with or without the leading '$' and '*hh'

    Returns:
        Two-character uppercase hex string of checksum
    """
    start = 1 if sentence.startswith(("$", "!")) else 0
    end = sentence.find("*")
    if end == -1:
        end = len(sentence)

    checksum = 0
    for char in sentence[start:end]:
        checksum ^= ord(char)

    return f"{checksum:02X}"


def _degrees_minutes(value: float) -> Tuple[int, float]:
    value = abs(value)
    degrees = int(value)
    minutes = round((value - degrees) * 60, 4)
    # 59.99999 rounds to 60.0000; carry it into the degrees
    if minutes >= 60.0:
        degrees += 1
        minutes -= 60.0
    return degrees, minutes


def format_lat(lat: float) -> str:
    """Convert decimal degrees to NMEA ddmm.mmmm,N/S format"""
    hemisphere = "N" if lat >= 0 else "S"
    degrees, minutes = _degrees_minutes(lat)
    return f"{degrees:02d}{minutes:07.4f},{hemisphere}"


def format_lon(lon: float) -> str:
    """Convert decimal degrees to NMEA dddmm.mmmm,E/W format"""
    hemisphere = "E" if lon >= 0 else "W"
    degrees, minutes = _degrees_minutes(lon)
    return f"{degrees:03d}{minutes:07.4f},{hemisphere}"


def format_time(timestamp: datetime) -> str:
    """UTC time as hhmmss.ss"""
    return f"{timestamp:%H%M%S}.{timestamp.microsecond // 10000:02d}"


def format_date(timestamp: datetime) -> str:
    """UTC date as ddmmyy"""
    return f"{timestamp:%d%m%y}"


class SentenceEncoder:
    """Formats a navigation state snapshot as NMEA 0183 sentences"""

    SENTENCE_TYPES = ["GGA", "RMC", "GLL", "VTG", "GSA", "GSV"]

    def __init__(self, talker_id: str = "GP"):
        """
        Args:
            talker_id: Two-character talker ID. Defaults to "GP" (GPS).
        """
        if len(talker_id) != 2 or not (talker_id.isascii() and talker_id.isalpha()):
            raise ValueError(
                f"Talker ID must be exactly 2 alphabetic characters, got: '{talker_id}'"
            )
        self.talker_id = talker_id.upper()

    def format_message(self, body: str) -> str:
        """Wrap a sentence body as $<body>*<checksum>"""
        return f"${body}*{calculate_checksum(body)}"

    def gga(self, state: NavigationState) -> str:
        """
        GGA - Global Positioning System Fix Data.
        Format: $--GGA,hhmmss.ss,llll.llll,a,yyyyy.yyyy,a,q,nn,x.x,x.x,M,x.x,M,x.x,xxxx*hh
        """
        position = state.position
        gga = (
            f"{self.talker_id}GGA,"
            f"{format_time(position.timestamp)},"
            f"{format_lat(position.lat)},"
            f"{format_lon(position.lon)},"
            f"{state.fix_quality},"
            f"{state.satellites:02d},"  # leading zero
            f"{state.hdop:.1f},"
            f"{state.altitude:.1f},M,"  # Altitude and units
            f"0.0,M,"  # Geoid separation and units
            f","  # DGPS age (not used)
            # DGPS station ID (not used)
        )
        return self.format_message(gga)

    def rmc(self, state: NavigationState) -> str:
        """RMC - Recommended Minimum Navigation Information"""
        position = state.position
        rmc = (
            f"{self.talker_id}RMC,"
            f"{format_time(position.timestamp)},A,"
            f"{format_lat(position.lat)},"
            f"{format_lon(position.lon)},"
            f"{state.speed:.1f},"
            f"{state.course:.1f},"
            f"{format_date(position.timestamp)},"
            f"{abs(state.magnetic_variation):.1f},E"
        )
        return self.format_message(rmc)

    def gll(self, state: NavigationState) -> str:
        """GLL - Geographic Position, Latitude/Longitude"""
        position = state.position
        gll = (
            f"{self.talker_id}GLL,"
            f"{format_lat(position.lat)},"
            f"{format_lon(position.lon)},"
            f"{format_time(position.timestamp)},A"
        )
        return self.format_message(gll)

    def vtg(self, state: NavigationState) -> str:
        """
        VTG - Track Made Good and Ground Speed.
        Format: $--VTG,x.x,T,x.x,M,x.x,N,x.x,K*hh
        """
        magnetic_course = (state.course + state.magnetic_variation) % 360
        speed_kmh = state.speed * KNOTS_TO_KMH

        vtg = (
            f"{self.talker_id}VTG,"
            f"{state.course:.1f},T,"  # True course
            f"{magnetic_course:.1f},M,"  # Magnetic course
            f"{state.speed:.1f},N,"  # Speed in knots
            f"{speed_kmh:.1f},K"  # Speed in km/h
        )
        return self.format_message(vtg)

    def gsa(self, state: NavigationState) -> str:
        """
        GSA - GPS DOP and active satellites.
        Mode A (automatic), 3D fix, twelve PRN slots, then PDOP, HDOP, VDOP.
        """
        prns = ACTIVE_SATELLITES + [""] * (PRN_SLOTS - len(ACTIVE_SATELLITES))
        gsa = (
            f"{self.talker_id}GSA,A,3,"
            f"{','.join(prns)},"
            f"{state.hdop * 1.5:.1f},"  # PDOP
            f"{state.hdop:.1f},"  # HDOP
            f"{state.hdop * 0.8:.1f}"  # VDOP
        )
        return self.format_message(gsa)

    def gsv(self, state: NavigationState) -> List[str]:
        """GSV - Satellites in view, one sentence per four satellites"""
        pages = [
            SIMULATED_CONSTELLATION[i : i + SATELLITES_PER_GSV]
            for i in range(0, len(SIMULATED_CONSTELLATION), SATELLITES_PER_GSV)
        ]
        sentences = []
        for page_number, satellites in enumerate(pages, start=1):
            fields = ",".join(
                f"{prn},{elevation:02d},{azimuth:03d},{snr:02d}"
                for prn, elevation, azimuth, snr in satellites
            )
            gsv = (
                f"{self.talker_id}GSV,"
                f"{len(pages)},{page_number},"
                f"{len(SIMULATED_CONSTELLATION):02d},"
                f"{fields}"
            )
            sentences.append(self.format_message(gsv))
        return sentences

    def _generators(self) -> List[Tuple[str, Callable]]:
        return [
            ("GGA", self.gga),
            ("RMC", self.rmc),
            ("GLL", self.gll),
            ("VTG", self.vtg),
            ("GSA", self.gsa),
            ("GSV", self.gsv),
        ]

    def encode_sentences(self, state: NavigationState) -> Iterator[Tuple[str, str]]:
        """
        Yield (sentence type, sentence) pairs in transmission order.

        A sentence that fails to format is logged and skipped; the remaining
        sentences are still produced.
        """
        for sentence_type, generate in self._generators():
            try:
                result = generate(state)
            except (TypeError, ValueError, AttributeError, OverflowError) as e:
                logging.error(f"Error formatting {sentence_type} sentence: {e}")
                continue
            if isinstance(result, str):
                yield sentence_type, result
            else:
                for sentence in result:
                    yield sentence_type, sentence

    def encode_all(self, state: NavigationState) -> List[str]:
        """All sentences for a state, in transmission order, without line endings"""
        return [sentence for _, sentence in self.encode_sentences(state)]
