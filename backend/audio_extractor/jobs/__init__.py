"""
Job domain: models, stage state machine, registry, engine, reaper.

A job is one uploaded input with two independent stages
(extraction, transcription). All state lives in memory.

The engine depends on the execution adapters; import it from
audio_extractor.jobs.engine.
"""

from .errors import (
    ExtractorError,
    ValidationError,
    NotFoundError,
    ConflictError,
    InvalidStateTransitionError,
)
from .models import (
    Stage,
    StageStatus,
    StageRecord,
    Job,
    TriggerResult,
)
from .state import (
    can_transition_stage,
    queue_stage,
)
from .registry import JobRegistry

__all__ = [
    # Errors
    "ExtractorError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidStateTransitionError",
    # Models
    "Stage",
    "StageStatus",
    "StageRecord",
    "Job",
    "TriggerResult",
    # State validation
    "can_transition_stage",
    "queue_stage",
    # Registry
    "JobRegistry",
]
