"""
State transition validation for job stages.

Stage lifecycle (same shape for extraction and transcription):

    not_started | uploaded | failed --trigger--> queued
    queued --worker start--> processing
    processing --adapter result--> completed | failed
    queued --worker could not start--> failed

Extra rules:
- transcription may only be queued once extraction is completed
- a trigger on an active (queued/processing) stage is a conflict
- a trigger on a completed stage is a no-op (idempotent)
- re-queueing extraction discards the previous transcription

The functions below that take a Job are registry transforms: they run
under the registry lock via JobRegistry.mutate() and must not do I/O.
"""

from typing import FrozenSet, Optional, Sequence, Set, Tuple
from .models import Job, Stage, StageRecord, StageStatus
from .errors import ConflictError, InvalidStateTransitionError


# Progress reported as soon as a trigger is accepted
QUEUED_PROGRESS = 1

# A stage in one of these states may be (re)triggered
IDLE_STATES: FrozenSet[StageStatus] = frozenset({
    StageStatus.NOT_STARTED,
    StageStatus.UPLOADED,
    StageStatus.FAILED,
})

# A worker owns the stage while it is in one of these states
ACTIVE_STATES: FrozenSet[StageStatus] = frozenset({
    StageStatus.QUEUED,
    StageStatus.PROCESSING,
})

_STAGE_TRANSITIONS: Set[Tuple[StageStatus, StageStatus]] = {
    # Trigger
    (StageStatus.NOT_STARTED, StageStatus.QUEUED),
    (StageStatus.UPLOADED, StageStatus.QUEUED),
    (StageStatus.FAILED, StageStatus.QUEUED),

    # Worker start
    (StageStatus.QUEUED, StageStatus.PROCESSING),

    # Terminal
    (StageStatus.PROCESSING, StageStatus.COMPLETED),
    (StageStatus.PROCESSING, StageStatus.FAILED),
    (StageStatus.QUEUED, StageStatus.FAILED),
}


def is_active(status: StageStatus) -> bool:
    """True while a worker owns the stage."""
    return status in ACTIVE_STATES


def can_transition_stage(from_status: StageStatus, to_status: StageStatus) -> bool:
    """
    Check if a stage state transition is legal.

    Progress updates keep the stage in PROCESSING, so the identity
    transition is allowed for PROCESSING only.
    """
    if from_status == to_status == StageStatus.PROCESSING:
        return True
    return (from_status, to_status) in _STAGE_TRANSITIONS


def validate_stage_transition(
    stage: Stage,
    from_status: StageStatus,
    to_status: StageStatus,
) -> None:
    """
    Validate a stage transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition_stage(from_status, to_status):
        raise InvalidStateTransitionError(
            Stage(stage).value, from_status.value, to_status.value
        )


def _transition(
    job: Job,
    stage: Stage,
    to_status: StageStatus,
    **changes,
) -> StageRecord:
    current = job.stage(stage)
    validate_stage_transition(stage, current.status, to_status)
    record = current.replace(status=to_status, **changes)
    job.set_stage(stage, record)
    return record


def queue_stage(job: Job, stage: Stage) -> Optional[bool]:
    """
    Trigger transform: move a stage to QUEUED.

    Returns False (no change) when the stage is already completed, so
    the caller can report the cached result.

    Raises:
        ConflictError: stage is active, or transcription requested before
            extraction completed
    """
    current = job.stage(stage)

    if stage == Stage.TRANSCRIPTION and job.extraction.status != StageStatus.COMPLETED:
        raise ConflictError(
            "Extraction has not completed yet",
            code="extraction_incomplete",
        )

    if is_active(current.status):
        raise ConflictError(
            f"{Stage(stage).value.capitalize()} is already {current.status.value}",
            code="already_processing",
        )

    if current.status == StageStatus.COMPLETED:
        return False

    _transition(
        job,
        stage,
        StageStatus.QUEUED,
        progress=QUEUED_PROGRESS,
        error="",
        error_kind="",
    )

    # New audio is about to be produced; any previous transcript is stale
    if stage == Stage.EXTRACTION:
        job.transcription = StageRecord()

    return True


def start_stage(
    job: Job,
    stage: Stage,
    output_paths: Sequence[str],
    output_names: Sequence[str],
) -> None:
    """Worker-start transform: QUEUED -> PROCESSING, recording artifact paths."""
    _transition(
        job,
        stage,
        StageStatus.PROCESSING,
        output_paths=tuple(output_paths),
        output_names=tuple(output_names),
    )


def record_progress(job: Job, stage: Stage, percent: int) -> None:
    """
    Progress transform.

    Progress never decreases within a run: the stored value is the
    running maximum of everything reported since the stage was queued.
    """
    current = job.stage(stage)
    percent = max(0, min(100, int(percent)))
    _transition(
        job,
        stage,
        StageStatus.PROCESSING,
        progress=max(current.progress, percent),
    )


def complete_stage(job: Job, stage: Stage) -> None:
    """Success transform: PROCESSING -> COMPLETED at 100%."""
    _transition(
        job,
        stage,
        StageStatus.COMPLETED,
        progress=100,
        error="",
        error_kind="",
    )


def fail_stage(job: Job, stage: Stage, error: str, kind: str) -> None:
    """Failure transform: QUEUED/PROCESSING -> FAILED, storing the error."""
    _transition(
        job,
        stage,
        StageStatus.FAILED,
        progress=0,
        error=error,
        error_kind=kind,
    )
