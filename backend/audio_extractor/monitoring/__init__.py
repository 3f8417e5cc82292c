"""
Monitoring: progress events, the broadcaster, and read-only endpoints.
"""

from .broadcaster import ProgressBroadcaster, Subscription
from .models import ProgressEvent
from .queries import build_progress_event

__all__ = [
    "ProgressBroadcaster",
    "Subscription",
    "ProgressEvent",
    "build_progress_event",
]
