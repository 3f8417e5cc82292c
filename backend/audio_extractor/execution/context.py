"""
Execution context for stage workers.

Every worker runs under one ExecutionContext: a cancellation flag plus an
optional deadline. Adapters poll or wait on it; the process watchdog kills
the child as soon as it fires.
"""

import threading
import time
from typing import Optional

from .errors import CancellationError


DEADLINE_EXCEEDED = "deadline exceeded"


class ExecutionContext:
    """
    Cancellable, deadline-bounded context.

    Cancellation is sticky: the first reason wins.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Seconds until the deadline (None or <= 0 for no deadline)
        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None
        self.deadline: Optional[float] = None
        if timeout is not None and timeout > 0:
            self.deadline = time.monotonic() + timeout

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. Later calls keep the first reason."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
        self._event.set()

    def _check_deadline(self) -> None:
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel(DEADLINE_EXCEEDED)

    @property
    def cancelled(self) -> bool:
        self._check_deadline()
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        self._check_deadline()
        with self._lock:
            return self._reason

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until cancelled, the deadline passes, or `timeout` elapses.

        Returns:
            True if the context is cancelled
        """
        remaining = self.remaining()
        if remaining is not None and (timeout is None or remaining < timeout):
            timeout = remaining
        self._event.wait(timeout)
        return self.cancelled

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            CancellationError: If the context has been cancelled
        """
        if self.cancelled:
            raise CancellationError(self.reason or "cancelled")
