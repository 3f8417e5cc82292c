"""
Execution-specific errors.

All errors are non-fatal to the application.
They indicate that one stage run failed; the stage is marked FAILED,
the message and `kind` are stored on the job, and the service keeps running.
"""

from typing import Optional

from ..jobs.errors import ExtractorError


class ProcessError(ExtractorError):
    """
    Base exception for external process failures.

    All asynchronous stage failures inherit from this.
    """

    kind = "process_error"


class ProcessLaunchError(ProcessError):
    """
    The external tool could not be started.

    Raised when:
    - Binary missing or not executable
    - Transcription model not configured
    - Output directory not writable
    """

    kind = "launch_error"


class ProcessExecutionError(ProcessError):
    """
    The external tool exited with a non-zero code.

    `message` is the last diagnostic line (bounded), or a generic
    message when the tool printed nothing.
    """

    kind = "execution_error"

    def __init__(self, message: str, exit_code: Optional[int] = None):
        self.exit_code = exit_code
        super().__init__(message)


class CancellationError(ProcessError):
    """
    The run was cancelled before the tool finished.

    Raised on deadline expiry or explicit cancellation (e.g. shutdown).
    Distinct from ProcessExecutionError even though the child was killed.
    """

    kind = "cancelled"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cancelled: {reason}")


class ArtifactMissingError(ProcessError):
    """
    The tool reported success but an expected output file is absent.
    """

    kind = "artifact_missing"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Expected output not found: {path}")


class ProbeError(ExtractorError):
    """
    Duration probe failed.

    Never fails a stage: progress degrades to a jump to 100 on completion.
    """

    kind = "probe_error"
