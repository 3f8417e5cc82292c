"""
Tests for FFmpeg -progress stream parsing.
"""

from audio_extractor.execution.progress import (
    FFmpegProgressParser,
    parse_out_time,
    ratio_to_percent,
)


class TestRatioToPercent:
    def test_half(self):
        assert ratio_to_percent(50, 100) == 50

    def test_clamped_to_bounds(self):
        assert ratio_to_percent(-5, 100) == 0
        assert ratio_to_percent(250, 100) == 100

    def test_unknown_total(self):
        assert ratio_to_percent(10, 0) == 0


class TestParseOutTime:
    def test_parses_hms(self):
        assert parse_out_time("00:01:30.500000") == 90.5

    def test_rejects_garbage(self):
        assert parse_out_time("N/A") is None


class TestFFmpegProgressParser:
    """Parsing of key=value lines into percentages."""

    def test_out_time_us_is_microseconds(self):
        parser = FFmpegProgressParser(duration=100.0)
        assert parser.parse_line("out_time_us=50000000\n") == 50

    def test_out_time_ms_is_also_microseconds(self):
        parser = FFmpegProgressParser(duration=100.0)
        assert parser.parse_line("out_time_ms=25000000") == 25

    def test_out_time_string(self):
        parser = FFmpegProgressParser(duration=200.0)
        assert parser.parse_line("out_time=00:01:40.000000") == 50

    def test_end_marker_forces_100(self):
        parser = FFmpegProgressParser(duration=100.0)
        assert parser.parse_line("progress=end") == 100
        assert parser.finished

    def test_overshoot_is_clamped(self):
        parser = FFmpegProgressParser(duration=10.0)
        assert parser.parse_line("out_time_us=12000000") == 100

    def test_irrelevant_lines_are_ignored(self):
        parser = FFmpegProgressParser(duration=100.0)
        for line in ("", "frame=10", "bitrate=128.0kbits/s", "progress=continue", "garbage"):
            assert parser.parse_line(line) is None

    def test_malformed_value_is_ignored(self):
        parser = FFmpegProgressParser(duration=100.0)
        assert parser.parse_line("out_time_us=N/A") is None

    def test_unknown_duration_only_reports_end(self):
        """Without a probed duration progress jumps straight to 100."""
        parser = FFmpegProgressParser(duration=0)
        assert parser.coarse
        assert parser.parse_line("out_time_us=50000000") is None
        assert parser.parse_line("progress=end") == 100
