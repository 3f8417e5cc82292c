"""
Per-job progress broadcaster.

Observers subscribe to a job and receive ProgressEvents through a bounded
queue. Publishing never blocks: an observer whose queue is full (or that
has gone away) is evicted and its subscription closed, so one slow observer
never delays the others.

Lock order is broadcaster -> registry. subscribe() takes the registry
snapshot while holding the broadcaster lock; publishers always release the
registry lock before calling publish(). The first event a subscriber sees
is therefore never newer than any event delivered after it.
"""

import logging
import queue
import threading
from typing import Dict, List, Optional

from audio_extractor.jobs.registry import JobRegistry
from .models import ProgressEvent
from .queries import build_progress_event

logger = logging.getLogger(__name__)


DEFAULT_QUEUE_SIZE = 64

_CLOSED = object()


class Subscription:
    """
    One observer's handle on a job's event stream.

    get() returns None on timeout and, once the subscription is closed and
    its queue drained, immediately.
    """

    def __init__(self, job_id: str, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.job_id = job_id
        self._queue: "queue.Queue" = queue.Queue(maxsize=max(1, queue_size))
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: ProgressEvent) -> bool:
        """
        Non-blocking put.

        Returns:
            False if the subscription is closed or its queue is full
        """
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            return False
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        """Next event, or None on timeout or end of stream."""
        if self.closed and self._queue.empty():
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def get_nowait(self) -> Optional[ProgressEvent]:
        try:
            item = self._queue.get_nowait()
        except queue.Empty:
            return None
        return None if item is _CLOSED else item

    def drain(self) -> List[ProgressEvent]:
        """Every event currently queued."""
        events = []
        while True:
            event = self.get_nowait()
            if event is None:
                return events
            events.append(event)

    def close(self) -> None:
        """Close the stream. Idempotent. Wakes a blocked get()."""
        if self.closed:
            return
        self._closed.set()
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            pass  # get() sees the closed flag once the queue drains


class ProgressBroadcaster:
    """Multicasts progress events to every subscriber of a job."""

    def __init__(self, registry: JobRegistry, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.registry = registry
        self.queue_size = queue_size
        # job_id -> subscriptions
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, job_id: str) -> Subscription:
        """
        Register an observer for a job.

        The current snapshot event is queued before this returns.

        Raises:
            NotFoundError: If the job does not exist or has expired
        """
        with self._lock:
            job = self.registry.get(job_id)
            subscription = Subscription(job_id, self.queue_size)
            subscription.deliver(build_progress_event(job))
            self._subscribers.setdefault(job_id, []).append(subscription)
        logger.debug(f"[Broadcast] Subscriber attached to job {job_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove and close a subscription. Idempotent."""
        with self._lock:
            self._remove(subscription)
        subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        # Caller holds the lock
        subs = self._subscribers.get(subscription.job_id)
        if not subs:
            return
        if subscription in subs:
            subs.remove(subscription)
        if not subs:
            del self._subscribers[subscription.job_id]

    def publish(self, job_id: str, event: ProgressEvent) -> int:
        """
        Deliver an event to every subscriber of a job.

        Returns:
            Number of subscribers that received the event
        """
        evicted: List[Subscription] = []
        delivered = 0
        with self._lock:
            for subscription in list(self._subscribers.get(job_id, ())):
                if subscription.deliver(event):
                    delivered += 1
                else:
                    evicted.append(subscription)
                    self._remove(subscription)

        for subscription in evicted:
            logger.warning(f"[Broadcast] Evicting slow or closed subscriber of job {job_id}")
            subscription.close()
        return delivered

    def snapshot(self, job_id: str) -> ProgressEvent:
        """
        Poll fallback: the same event a new subscriber would receive first.

        Raises:
            NotFoundError: If the job does not exist or has expired
        """
        return build_progress_event(self.registry.get(job_id))

    def subscriber_count(self, job_id: Optional[str] = None) -> int:
        with self._lock:
            if job_id is not None:
                return len(self._subscribers.get(job_id, ()))
            return sum(len(subs) for subs in self._subscribers.values())

    def close_job(self, job_id: str) -> None:
        """Close every subscription of a job (used when the job is reaped)."""
        with self._lock:
            subs = self._subscribers.pop(job_id, [])
        for subscription in subs:
            subscription.close()

    def close_all(self) -> None:
        """Close every subscription (shutdown)."""
        with self._lock:
            subs = [s for group in self._subscribers.values() for s in group]
            self._subscribers.clear()
        for subscription in subs:
            subscription.close()
