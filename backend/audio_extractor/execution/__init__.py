"""
External process adapters.

FFmpegExtractor: input -> audio file, ratio-based progress.
WhisperTranscriber: audio file -> .txt + .srt, ticker progress.
"""

from .context import ExecutionContext
from .errors import (
    ArtifactMissingError,
    CancellationError,
    ProbeError,
    ProcessError,
    ProcessExecutionError,
    ProcessLaunchError,
)
from .ffmpeg import FFmpegExtractor
from .whisper import WhisperTranscriber

__all__ = [
    "ArtifactMissingError",
    "CancellationError",
    "ExecutionContext",
    "FFmpegExtractor",
    "ProbeError",
    "ProcessError",
    "ProcessExecutionError",
    "ProcessLaunchError",
    "WhisperTranscriber",
]
