"""
whisper.cpp transcription adapter.

whisper-cli prints no machine-readable progress, so progress is
synthesized: 1 immediately, then a ticker that starts at 5 and adds 7 every
interval, capped at 95, until the process exits.

Success requires both <base>.txt and <base>.srt to exist afterwards.
"""

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List, Tuple

from .base import PROCESSING, ProgressCallback, noop_callback
from .context import ExecutionContext
from .errors import (
    ArtifactMissingError,
    CancellationError,
    ProcessExecutionError,
    ProcessLaunchError,
)
from .process import ProcessWatchdog, compact_log_line, last_non_empty_line, spawn

logger = logging.getLogger(__name__)


INITIAL_PROGRESS = 1
TICK_START = 5
TICK_STEP = 7
TICK_CAP = 95

TRANSCRIPT_EXTENSIONS: Tuple[str, ...] = ("txt", "srt")


def artifact_paths(output_base: str) -> List[str]:
    """Files whisper-cli writes for `-of <base> -otxt -osrt`."""
    return [f"{output_base}.{ext}" for ext in TRANSCRIPT_EXTENSIONS]


class WhisperTranscriber:
    """Runs whisper-cli on an extracted audio file."""

    name = "Whisper"

    def __init__(
        self,
        whisper_path: str = "whisper-cli",
        model_path: str = "",
        language: str = "auto",
        tick_interval: float = 2.0,
    ):
        self.whisper_path = whisper_path
        self.model_path = model_path
        self.language = language or "auto"
        self.tick_interval = tick_interval

    def build_command(self, audio_path: str, output_base: str) -> List[str]:
        return [
            self.whisper_path,
            "-m", self.model_path,
            "-f", audio_path,
            "-of", output_base,
            "-otxt",
            "-osrt",
            "-l", self.language,
        ]

    def transcribe(
        self,
        ctx: ExecutionContext,
        audio_path: str,
        output_base: str,
        callback: ProgressCallback = noop_callback,
    ) -> List[str]:
        """
        Transcribe `audio_path` into <output_base>.txt and <output_base>.srt.

        Returns:
            The two artifact paths (txt, srt)

        Raises:
            ProcessLaunchError: model not configured or whisper-cli missing
            ProcessExecutionError: whisper-cli exited non-zero
            CancellationError: context cancelled or deadline exceeded
            ArtifactMissingError: an expected transcript file is absent
        """
        if not self.model_path:
            raise ProcessLaunchError("Whisper model is not configured")

        ctx.raise_if_cancelled()
        callback(INITIAL_PROGRESS, PROCESSING, "Starting transcription")

        cmd = self.build_command(audio_path, output_base)
        logger.info(f"[Whisper] Executing: {' '.join(cmd)}")

        with tempfile.TemporaryFile(mode="w+", errors="replace") as spool:
            process = spawn(cmd, stdout=spool, stderr=subprocess.STDOUT, tool="whisper-cli")
            logger.info(f"[Whisper] Started PID {process.pid}")

            percent = TICK_START
            with ProcessWatchdog(ctx, process) as watchdog:
                while True:
                    try:
                        exit_code = process.wait(timeout=self.tick_interval)
                        break
                    except subprocess.TimeoutExpired:
                        callback(percent, PROCESSING, "Transcribing audio")
                        percent = min(TICK_CAP, percent + TICK_STEP)

            spool.seek(0)
            output = spool.read()

        logger.info(f"[Whisper] PID {process.pid} exited with code {exit_code}")

        if watchdog.fired or (exit_code != 0 and ctx.cancelled):
            raise CancellationError(ctx.reason or "cancelled")

        if exit_code != 0:
            reason = compact_log_line(last_non_empty_line(output))
            raise ProcessExecutionError(
                f"whisper-cli failed: {reason or f'exit code {exit_code}'}",
                exit_code=exit_code,
            )

        paths = artifact_paths(output_base)
        for path in paths:
            if not Path(path).is_file():
                raise ArtifactMissingError(path)

        logger.info(f"[Whisper] Completed: {output_base}.{{txt,srt}}")
        return paths
