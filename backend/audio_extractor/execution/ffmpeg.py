"""
FFmpeg audio extraction adapter.

Design rules:
- One subprocess per extraction run
- Duration is probed first with ffprobe; a failed probe only degrades
  progress to a jump to 100 at the end
- Progress comes from `-progress pipe:1` on stdout
- stderr is drained on its own thread; its last line is the failure reason
- Non-zero exit = ProcessExecutionError
- Context cancellation kills the process group = CancellationError
"""

import logging
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional

from .base import PROCESSING, ProgressCallback, noop_callback
from .codec_mapping import codec_and_quality_args
from .context import ExecutionContext
from .errors import (
    ArtifactMissingError,
    CancellationError,
    ProbeError,
    ProcessExecutionError,
    ProcessLaunchError,
)
from .process import ProcessWatchdog, compact_log_line, spawn
from .progress import FFmpegProgressParser

logger = logging.getLogger(__name__)


PROBE_TIMEOUT_SECONDS = 30

# stderr lines kept for the failure message
STDERR_TAIL_LINES = 50


class FFmpegExtractor:
    """
    Extracts the audio track of an input file with FFmpeg.

    Ratio-based progress: elapsed output time / probed input duration.
    """

    name = "FFmpeg"

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    def build_probe_command(self, input_path: str) -> List[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            input_path,
        ]

    def probe_duration(self, input_path: str) -> float:
        """
        Probe the input duration in seconds.

        Raises:
            ProbeError: If ffprobe is missing, fails, or prints no usable duration
        """
        cmd = self.build_probe_command(input_path)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=PROBE_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProbeError(f"ffprobe failed: {e}") from e

        if result.returncode != 0:
            reason = compact_log_line(result.stderr) or f"exit code {result.returncode}"
            raise ProbeError(f"ffprobe failed: {reason}")

        value = result.stdout.strip()
        try:
            duration = float(value)
        except ValueError:
            raise ProbeError(f"ffprobe returned no duration: {value!r}")
        if duration <= 0:
            raise ProbeError(f"ffprobe returned non-positive duration: {duration}")
        return duration

    def build_command(
        self,
        input_path: str,
        output_path: str,
        format: str,
        quality: str,
    ) -> List[str]:
        """Build the FFmpeg command line."""
        cmd = [self.ffmpeg_path, "-y", "-i", input_path, "-vn"]
        cmd.extend(codec_and_quality_args(format, quality))
        cmd.extend(["-progress", "pipe:1", "-nostats"])
        cmd.append(output_path)
        return cmd

    def _drain(self, stream, tail: Deque[str]) -> None:
        for line in stream:
            line = line.strip()
            if line:
                tail.append(line)

    def extract(
        self,
        ctx: ExecutionContext,
        input_path: str,
        output_path: str,
        format: str,
        quality: str,
        callback: ProgressCallback = noop_callback,
    ) -> None:
        """
        Run one extraction.

        Returns normally on success.

        Raises:
            ProcessLaunchError: ffmpeg missing or output directory unusable
            ProcessExecutionError: ffmpeg exited non-zero
            CancellationError: context cancelled or deadline exceeded
            ArtifactMissingError: ffmpeg succeeded but wrote no file
        """
        ctx.raise_if_cancelled()

        try:
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProcessLaunchError(f"Cannot create output directory: {e}") from e

        duration = 0.0
        try:
            duration = self.probe_duration(input_path)
        except ProbeError as e:
            logger.warning(f"[FFmpeg] {e.message}; progress will jump to 100 on completion")

        parser = FFmpegProgressParser(duration)
        callback(0, PROCESSING, "Extracting audio")

        cmd = self.build_command(input_path, output_path, format, quality)
        logger.info(f"[FFmpeg] Executing: {' '.join(cmd)}")

        process = spawn(cmd, tool="ffmpeg")
        logger.info(f"[FFmpeg] Started PID {process.pid}")

        tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        drain = threading.Thread(
            target=self._drain,
            args=(process.stderr, tail),
            name=f"ffmpeg-stderr-{process.pid}",
            daemon=True,
        )
        drain.start()

        last_percent: Optional[int] = None
        with ProcessWatchdog(ctx, process) as watchdog:
            for line in process.stdout:
                percent = parser.parse_line(line)
                if percent is not None and percent != last_percent:
                    last_percent = percent
                    callback(percent, PROCESSING, None)
            exit_code = process.wait()
        drain.join()
        process.stdout.close()
        process.stderr.close()

        logger.info(f"[FFmpeg] PID {process.pid} exited with code {exit_code}")

        if watchdog.fired or (exit_code != 0 and ctx.cancelled):
            raise CancellationError(ctx.reason or "cancelled")

        if exit_code != 0:
            reason = compact_log_line(tail[-1]) if tail else ""
            raise ProcessExecutionError(
                reason or f"ffmpeg failed with exit code {exit_code}",
                exit_code=exit_code,
            )

        if not Path(output_path).is_file():
            raise ArtifactMissingError(output_path)

        if last_percent != 100:
            callback(100, PROCESSING, None)
        logger.info(f"[FFmpeg] Completed: {output_path}")
