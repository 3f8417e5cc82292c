"""
Reaper - periodic cleanup of idle jobs.

Every interval the reaper removes jobs whose updated_at is at least TTL
old and deletes every file they reference (input, audio, transcripts).

File deletion is best-effort: a missing or undeletable file is logged at
debug level and never stops the sweep.
"""

import logging
import os
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .models import Job
from .registry import JobRegistry

logger = logging.getLogger(__name__)


# Defaults
CLEANUP_INTERVAL_SECONDS = 30 * 60
JOB_TTL_SECONDS = 24 * 60 * 60


class Reaper:
    """
    Removes expired jobs and their files on a background thread.

    A non-positive interval or TTL disables the background thread;
    sweep() can still be called directly.
    """

    def __init__(
        self,
        registry: JobRegistry,
        interval: float = CLEANUP_INTERVAL_SECONDS,
        ttl: float = JOB_TTL_SECONDS,
        on_removed: Optional[Callable[[Job], None]] = None,
    ):
        """
        Initialize the reaper.

        Args:
            registry: Registry to sweep
            interval: Seconds between sweeps
            ttl: Idle seconds after which a job is removed
            on_removed: Called once per removed job, after its files are gone
        """
        self.registry = registry
        self.interval = interval
        self.ttl = ttl
        self.on_removed = on_removed

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """
        Run one cleanup pass.

        Args:
            now: Reference time (default: the registry clock)

        Returns:
            IDs of the removed jobs
        """
        now = now or self.registry.now()
        cutoff = now - timedelta(seconds=self.ttl)
        removed = self.registry.remove_expired(cutoff)

        for job in removed:
            for path in job.referenced_paths():
                _remove_file(path)
            if self.on_removed is not None:
                self.on_removed(job)

        if removed:
            logger.info(f"[Reaper] Removed {len(removed)} expired job(s)")
        return [job.id for job in removed]

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("[Reaper] Sweep failed")

    def start(self) -> None:
        """Start the background sweep thread."""
        if self.interval <= 0 or self.ttl <= 0:
            logger.info("[Reaper] Disabled (interval or TTL not positive)")
            return
        if self.running:
            return

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name="reaper",
        )
        self._thread.start()
        logger.info(f"[Reaper] Started: interval={self.interval}s ttl={self.ttl}s")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal the sweep thread to exit and join it."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        logger.debug(f"[Reaper] Could not remove {path}: {e}")
