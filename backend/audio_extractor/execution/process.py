"""
Subprocess helpers shared by the FFmpeg and Whisper adapters.

Design rules:
- Every child starts in its own session so the whole tree can be killed
- Cancellation is SIGTERM to the process group, SIGKILL after a grace period
- A watchdog thread per run waits on the ExecutionContext and kills the
  child the moment it is cancelled or its deadline passes
"""

import logging
import os
import signal
import subprocess
import threading
from typing import IO, List, Optional, Union

from .context import ExecutionContext
from .errors import ProcessLaunchError

logger = logging.getLogger(__name__)


# Seconds between SIGTERM and SIGKILL
TERMINATE_GRACE_SECONDS = 5.0

# Diagnostic lines stored on a failed stage are cut to this many chars
LOG_LINE_LIMIT = 220


def compact_log_line(text: str, limit: int = LOG_LINE_LIMIT) -> str:
    """Collapse whitespace and truncate a diagnostic line."""
    line = " ".join(text.split())
    if len(line) > limit:
        return line[:limit] + "..."
    return line


def last_non_empty_line(text: str) -> str:
    for line in reversed(text.splitlines()):
        if line.strip():
            return line.strip()
    return ""


def spawn(
    cmd: List[str],
    stdout: Union[int, IO, None] = subprocess.PIPE,
    stderr: Union[int, IO, None] = subprocess.PIPE,
    tool: str = "process",
) -> subprocess.Popen:
    """
    Start an external tool in its own process group.

    Raises:
        ProcessLaunchError: If the binary is missing or cannot be executed
    """
    try:
        return subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=stdout,
            stderr=stderr,
            text=True,
            errors="replace",
            start_new_session=True,
        )
    except OSError as e:
        raise ProcessLaunchError(f"Failed to start {tool} ({cmd[0]}): {e}") from e


def _signal_group(process: subprocess.Popen, sig: int) -> None:
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass  # Already gone
    except PermissionError:
        # Group leader exited and the pgid was reused; fall back to the child
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass


def terminate_process_tree(
    process: subprocess.Popen,
    grace: float = TERMINATE_GRACE_SECONDS,
) -> None:
    """
    Terminate a child and everything it spawned.

    Uses SIGTERM first, escalates to SIGKILL after `grace` seconds.
    """
    if process.poll() is not None:
        return

    logger.info(f"[Process] Sending SIGTERM to process group {process.pid}")
    _signal_group(process, signal.SIGTERM)
    try:
        process.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        logger.warning(f"[Process] PID {process.pid} did not terminate, sending SIGKILL")
        _signal_group(process, signal.SIGKILL)
        process.wait()


class ProcessWatchdog:
    """
    Kills a child process when its ExecutionContext is cancelled.

    Usage:
        with ProcessWatchdog(ctx, process):
            process.wait()
        if ctx.cancelled: ...
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        process: subprocess.Popen,
        poll_interval: float = 0.1,
        grace: float = TERMINATE_GRACE_SECONDS,
    ):
        self.ctx = ctx
        self.process = process
        self.poll_interval = poll_interval
        self.grace = grace
        self.fired = False
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _run(self) -> None:
        while not self._done.is_set():
            if self.ctx.wait(self.poll_interval):
                if self.process.poll() is None:
                    self.fired = True
                    logger.warning(
                        f"[Process] Killing PID {self.process.pid}: {self.ctx.reason}"
                    )
                    terminate_process_tree(self.process, self.grace)
                return
            if self.process.poll() is not None:
                return

    def start(self) -> "ProcessWatchdog":
        self._thread = threading.Thread(
            target=self._run,
            name=f"watchdog-{self.process.pid}",
            daemon=True,
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        self._done.set()
        if self._thread is not None:
            self._thread.join()

    def __enter__(self) -> "ProcessWatchdog":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
        if exc_type is not None:
            # Caller is bailing out early; do not leave the child running
            terminate_process_tree(self.process, self.grace)
