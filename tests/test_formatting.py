"""
Tests für Formatierungsfunktionen.
"""

from nss_analyzer.utils.formatting import (
    NOT_AVAILABLE,
    format_db,
    format_delay,
    format_frequency,
    format_optional,
    format_percent,
    format_seconds,
)


class TestFormatting:
    """Tests für Wert-Formatierung."""

    def test_optional(self):
        assert format_optional(0.5) == "0.500"
        assert format_optional(1.234, 1) == "1.2"
        assert format_optional(None) == NOT_AVAILABLE == "N/A"

    def test_frequency(self):
        assert format_frequency(250) == "250 Hz"
        assert format_frequency(1500) == "1.5 kHz"

    def test_db(self):
        assert format_db(-12.34) == "-12.3 dB"
        assert format_db(float("-inf")) == "-∞ dB"

    def test_delay(self):
        assert format_delay(5.0) == "5.00 ms"
        assert format_delay(None) == "N/A"

    def test_seconds(self):
        assert format_seconds(0.449) == "0.45 s"
        assert format_seconds(None) == "N/A"

    def test_percent(self):
        assert format_percent(0.823) == "82%"
