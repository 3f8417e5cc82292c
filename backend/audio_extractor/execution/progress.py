"""
FFmpeg progress parsing.

Real-time progress extraction from FFmpeg's machine-readable stream.

With `-progress pipe:1 -nostats`, FFmpeg writes key=value blocks to stdout:
    out_time_us=50000000
    out_time_ms=50000000
    out_time=00:00:50.000000
    ...
    progress=continue

and a final block ending in `progress=end`.

We parse:
- out_time_us / out_time_ms (both microseconds) or out_time → elapsed seconds
- Compare against the probed input duration → integer percentage
- progress=end → 100
"""

import re
from typing import Optional


# Matches: out_time=00:01:23.456789 (hours may exceed two digits)
OUT_TIME_PATTERN = re.compile(r'^(\d+):(\d{2}):(\d{2}(?:\.\d+)?)$')

END_MARKER = "progress=end"


def ratio_to_percent(elapsed: float, total: float) -> int:
    """
    Convert elapsed/total seconds to a percentage.

    The ratio is clamped to [0, 1] before scaling, so the result is
    always an int in [0, 100].
    """
    if total <= 0:
        return 0
    ratio = elapsed / total
    if ratio < 0:
        ratio = 0.0
    if ratio > 1:
        ratio = 1.0
    return int(ratio * 100)


def parse_out_time(value: str) -> Optional[float]:
    """Parse an `out_time` value (HH:MM:SS.ffffff) to seconds."""
    match = OUT_TIME_PATTERN.match(value.strip())
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


class FFmpegProgressParser:
    """
    Parse FFmpeg `-progress` output into percentages.

    Usage:
        parser = FFmpegProgressParser(duration=120.0)
        for line in ffmpeg_stdout:
            percent = parser.parse_line(line)
            if percent is not None:
                report(percent)

    With an unknown duration (<= 0) elapsed-time markers are ignored and
    only the end marker produces a value: progress jumps straight to 100.
    """

    def __init__(self, duration: float):
        """
        Initialize progress parser.

        Args:
            duration: Total input duration in seconds (0 if unknown)
        """
        self.duration = duration
        self.elapsed = 0.0
        self.finished = False

    @property
    def coarse(self) -> bool:
        """True when no duration is known."""
        return self.duration <= 0

    def parse_line(self, line: str) -> Optional[int]:
        """
        Parse a single line of FFmpeg progress output.

        Returns:
            Percentage if the line moved progress, None otherwise
        """
        line = line.strip()
        if not line:
            return None

        if line.startswith(END_MARKER):
            self.finished = True
            return 100

        key, sep, value = line.partition("=")
        if not sep:
            return None

        elapsed: Optional[float] = None
        if key in ("out_time_us", "out_time_ms"):
            # FFmpeg reports both in microseconds
            try:
                elapsed = float(value) / 1_000_000.0
            except ValueError:
                return None
        elif key == "out_time":
            elapsed = parse_out_time(value)

        if elapsed is None or self.coarse:
            return None

        self.elapsed = elapsed
        return ratio_to_percent(elapsed, self.duration)
