import operator
import re
import unittest
from datetime import UTC, datetime
from functools import reduce

from route_sim.models.navigation_state import NavigationState, Position
from route_sim.services.sentence_encoder import (
    SentenceEncoder,
    calculate_checksum,
    format_date,
    format_lat,
    format_lon,
    format_time,
)

SENTENCE_PATTERN = re.compile(r"^\$GP[A-Z]{3},[^*]*\*[0-9A-F]{2}$")
TIMESTAMP = datetime(2024, 3, 15, 12, 34, 56, 780000, tzinfo=UTC)


def make_state(**overrides) -> NavigationState:
    values = dict(
        position=Position(50.883163, -1.395309, TIMESTAMP),
        speed=12.0,
        course=90.0,
        magnetic_variation=-3.0,
    )
    values.update(overrides)
    return NavigationState(**values)


def body_of(sentence: str) -> str:
    return sentence[1 : sentence.index("*")]


class TestChecksum(unittest.TestCase):
    def test_matches_independent_xor(self):
        body = "GPGLL,5052.9898,N,00123.7185,W,123456.00,A"
        expected = f"{reduce(operator.xor, body.encode('ascii'), 0):02X}"
        self.assertEqual(calculate_checksum(body), expected)
        self.assertEqual(calculate_checksum(f"${body}*00"), expected)

    def test_reference_sentence(self):
        sentence = "$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47"
        self.assertEqual(calculate_checksum(sentence), "47")

    def test_uppercase_two_digits(self):
        # 'A' ^ 'B' == 0x03
        self.assertEqual(calculate_checksum("AB"), "03")


class TestFieldFormatting(unittest.TestCase):
    def test_latitude(self):
        self.assertEqual(format_lat(50.883163), "5052.9898,N")
        self.assertEqual(format_lat(-33.5), "3330.0000,S")
        self.assertEqual(format_lat(0.0), "0000.0000,N")

    def test_longitude(self):
        self.assertEqual(format_lon(-1.395309), "00123.7185,W")
        self.assertEqual(format_lon(151.25), "15115.0000,E")

    def test_minutes_carry_into_degrees(self):
        self.assertEqual(format_lat(50.99999999), "5100.0000,N")
        self.assertEqual(format_lon(-9.999999999), "01000.0000,W")

    def test_time_and_date(self):
        self.assertEqual(format_time(TIMESTAMP), "123456.78")
        self.assertEqual(format_date(TIMESTAMP), "150324")


class TestSentenceEncoder(unittest.TestCase):
    def setUp(self):
        self.encoder = SentenceEncoder()
        self.state = make_state()

    def test_gga(self):
        self.assertEqual(
            body_of(self.encoder.gga(self.state)),
            "GPGGA,123456.78,5052.9898,N,00123.7185,W,1,08,1.2,0.0,M,0.0,M,,",
        )

    def test_rmc(self):
        self.assertEqual(
            body_of(self.encoder.rmc(self.state)),
            "GPRMC,123456.78,A,5052.9898,N,00123.7185,W,12.0,90.0,150324,3.0,E",
        )

    def test_gll(self):
        self.assertEqual(
            body_of(self.encoder.gll(self.state)),
            "GPGLL,5052.9898,N,00123.7185,W,123456.78,A",
        )

    def test_vtg(self):
        self.assertEqual(
            body_of(self.encoder.vtg(self.state)),
            "GPVTG,90.0,T,87.0,M,12.0,N,22.2,K",
        )

    def test_vtg_magnetic_course_wraps(self):
        state = make_state(course=1.0, magnetic_variation=-3.0)
        fields = body_of(self.encoder.vtg(state)).split(",")
        self.assertEqual(fields[3], "358.0")

        state = make_state(course=359.0, magnetic_variation=3.0)
        fields = body_of(self.encoder.vtg(state)).split(",")
        self.assertEqual(fields[3], "2.0")

    def test_gsa(self):
        body = body_of(self.encoder.gsa(self.state))
        self.assertEqual(body, "GPGSA,A,3,01,02,03,04,05,06,07,08,,,,,1.8,1.2,1.0")
        # Sentence id, mode, fix, twelve PRN slots, PDOP, HDOP, VDOP
        self.assertEqual(len(body.split(",")), 18)

    def test_gsv_pages(self):
        sentences = self.encoder.gsv(self.state)
        self.assertEqual(len(sentences), 2)
        self.assertEqual(
            body_of(sentences[0]),
            "GPGSV,2,1,08,01,45,045,45,02,30,120,42,03,60,180,48,04,15,270,35",
        )
        fields = body_of(sentences[1]).split(",")
        self.assertEqual(fields[1:4], ["2", "2", "08"])
        self.assertEqual(fields[4::4], ["05", "06", "07", "08"])

    def test_encode_all_order_and_checksums(self):
        sentences = self.encoder.encode_all(self.state)
        self.assertEqual(
            [s[3:6] for s in sentences],
            ["GGA", "RMC", "GLL", "VTG", "GSA", "GSV", "GSV"],
        )
        for sentence in sentences:
            self.assertRegex(sentence, SENTENCE_PATTERN)
            self.assertEqual(sentence[-2:], calculate_checksum(sentence))
            self.assertNotIn("\r\n", sentence)

    def test_encoding_is_deterministic(self):
        self.assertEqual(
            self.encoder.encode_all(self.state), self.encoder.encode_all(make_state())
        )

    def test_failing_sentence_does_not_block_others(self):
        class BrokenRMCEncoder(SentenceEncoder):
            def rmc(self, state):
                raise ValueError("bad field")

        encoder = BrokenRMCEncoder()
        with self.assertLogs(level="ERROR") as logs:
            sentences = encoder.encode_all(self.state)
        self.assertEqual(
            [s[3:6] for s in sentences], ["GGA", "GLL", "VTG", "GSA", "GSV", "GSV"]
        )
        self.assertIn("RMC", logs.output[0])

    def test_talker_id_validation(self):
        with self.assertRaises(ValueError):
            SentenceEncoder("GPS")
        with self.assertRaises(ValueError):
            SentenceEncoder("G1")
        with self.assertRaises(ValueError):
            SentenceEncoder("äb")
        self.assertTrue(SentenceEncoder("gn").gll(self.state).startswith("$GNGLL,"))


if __name__ == "__main__":
    unittest.main()
