"""
In-memory job registry.

The registry is the single authoritative store of job state.

The registry provides:
- Job storage and retrieval by ID
- Atomic, lock-guarded mutation through transform functions
- Listing jobs by recency
- Atomic removal of expired jobs (used by the reaper)

Every method serializes through one lock. The lock is held only while
touching in-memory state: no file, process or network I/O ever happens
inside it. Callers always receive deep copies.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
from .models import Job, utcnow
from .errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

Transform = Callable[[Job], Optional[bool]]


class JobRegistry:
    """
    Thread-safe in-memory registry for job tracking.

    Jobs idle for longer than `ttl_seconds` are invisible to lookups even
    before the reaper removes them. A ttl of 0 disables expiry.
    """

    def __init__(
        self,
        ttl_seconds: float = 0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize registry.

        Args:
            ttl_seconds: Idle time after which a job is considered expired
            clock: Source of the current time (injectable for tests)
        """
        # job_id -> Job
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def _is_expired(self, job: Job, now: datetime) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return now - job.updated_at >= timedelta(seconds=self.ttl_seconds)

    def _live_job(self, job_id: str) -> Job:
        # Caller holds the lock
        job = self._jobs.get(job_id)
        if job is None or self._is_expired(job, self.now()):
            raise NotFoundError(job_id)
        return job

    def create(self, job: Job) -> str:
        """
        Add a job to the registry.

        Args:
            job: The job to add (stored as a copy)

        Returns:
            The job ID

        Raises:
            ConflictError: If a job with the same ID already exists
        """
        with self._lock:
            if job.id in self._jobs:
                raise ConflictError(
                    f"Job with ID '{job.id}' already exists",
                    code="duplicate_id",
                )
            self._jobs[job.id] = job.model_copy(deep=True)
        return job.id

    def get(self, job_id: str) -> Job:
        """
        Retrieve a snapshot of a job.

        Raises:
            NotFoundError: If the job does not exist or has expired
        """
        with self._lock:
            return self._live_job(job_id).model_copy(deep=True)

    def mutate(self, job_id: str, transform: Transform) -> Job:
        """
        Apply `transform` to a job atomically.

        The transform runs on a working copy under the registry lock. If it
        raises, nothing is stored. If it returns False the call is a no-op
        and updated_at is left alone. Otherwise the working copy replaces
        the stored job and updated_at is bumped.

        Returns:
            Snapshot of the job after the transform

        Raises:
            NotFoundError: If the job does not exist or has expired
            Exception: Whatever the transform raises
        """
        with self._lock:
            current = self._live_job(job_id)
            working = current.model_copy(deep=True)
            if transform(working) is False:
                return current.model_copy(deep=True)
            working.updated_at = self.now()
            self._jobs[job_id] = working
            return working.model_copy(deep=True)

    def list_jobs(self, limit: int = 10) -> List[Job]:
        """
        List live jobs, most recently updated first.

        Args:
            limit: Maximum number of jobs (<= 0 for all)
        """
        with self._lock:
            now = self.now()
            jobs = [
                job.model_copy(deep=True)
                for job in self._jobs.values()
                if not self._is_expired(job, now)
            ]
        jobs.sort(key=lambda j: j.updated_at, reverse=True)
        if limit > 0:
            jobs = jobs[:limit]
        return jobs

    def remove_expired(self, cutoff: datetime) -> List[Job]:
        """
        Remove every job last updated at or before `cutoff`.

        Returns:
            The removed jobs, so the caller can clean up their files
        """
        removed: List[Job] = []
        with self._lock:
            for job_id in [jid for jid, job in self._jobs.items() if job.updated_at <= cutoff]:
                removed.append(self._jobs.pop(job_id))
        return removed

    def count(self) -> int:
        """Number of stored jobs (expired-but-unswept included)."""
        with self._lock:
            return len(self._jobs)

    def clear(self) -> None:
        """
        Clear all jobs from the registry.

        Useful for testing or resetting state.
        """
        with self._lock:
            self._jobs.clear()
