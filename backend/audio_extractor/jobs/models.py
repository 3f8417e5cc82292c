"""
Job and StageRecord data models.

A job is one uploaded input plus two independent stages:
- extraction: input -> audio file (ffmpeg)
- transcription: audio file -> .txt + .srt (whisper-cli)

All models use Pydantic for validation.
State transitions are validated externally (see state.py).

StageRecord is frozen: a stage is only ever changed by replacing the
whole record, so readers never see a half-applied update.
"""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time used for every job timestamp."""
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Random 16 hex char job id."""
    return secrets.token_hex(8)


class Stage(str, Enum):
    """The two processing phases of a job."""

    EXTRACTION = "extraction"
    TRANSCRIPTION = "transcription"


class StageStatus(str, Enum):
    """
    Stage-level status.

    Each stage moves independently through these states.
    """

    NOT_STARTED = "not_started"
    UPLOADED = "uploaded"  # Extraction only: input stored, nothing run yet
    QUEUED = "queued"  # Trigger accepted, worker not yet running
    PROCESSING = "processing"  # External tool is running
    COMPLETED = "completed"
    FAILED = "failed"


class StageRecord(BaseModel):
    """
    State of one stage of a job.

    Immutable. Use replace() to derive the next record.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    status: StageStatus = StageStatus.NOT_STARTED
    progress: int = Field(default=0, ge=0, le=100)

    # Outcome
    error: str = ""
    error_kind: str = ""

    # Artifacts produced by this stage (absolute paths + download names)
    output_paths: Tuple[str, ...] = ()
    output_names: Tuple[str, ...] = ()

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def replace(self, **changes) -> "StageRecord":
        """Return a new record with `changes` applied and updated_at bumped."""
        changes.setdefault("updated_at", utcnow())
        return self.model_copy(update=changes)


class Job(BaseModel):
    """
    An uploaded input and its two processing stages.

    Jobs are only mutated through JobRegistry.mutate(); everything the
    registry hands out is a deep copy.
    """

    model_config = ConfigDict(extra="forbid")

    # Identity
    id: str = Field(default_factory=new_job_id)

    # Input
    input_path: str
    input_file_name: str

    # Declared output
    format: str = "mp3"
    quality: str = "medium"

    # Stages
    extraction: StageRecord = Field(
        default_factory=lambda: StageRecord(status=StageStatus.UPLOADED)
    )
    transcription: StageRecord = Field(default_factory=StageRecord)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def stage(self, stage: Stage) -> StageRecord:
        """Get the record for a stage."""
        return getattr(self, Stage(stage).value)

    def set_stage(self, stage: Stage, record: StageRecord) -> None:
        """Replace the record for a stage."""
        setattr(self, Stage(stage).value, record)

    @property
    def output_path(self) -> Optional[str]:
        """Extracted audio file, once the extraction worker has started."""
        paths = self.extraction.output_paths
        return paths[0] if paths else None

    @property
    def output_name(self) -> Optional[str]:
        names = self.extraction.output_names
        return names[0] if names else None

    @property
    def transcript_txt_path(self) -> Optional[str]:
        paths = self.transcription.output_paths
        return paths[0] if paths else None

    @property
    def transcript_srt_path(self) -> Optional[str]:
        paths = self.transcription.output_paths
        return paths[1] if len(paths) > 1 else None

    def referenced_paths(self) -> List[str]:
        """Every file on disk that belongs to this job."""
        paths = [self.input_path]
        paths.extend(self.extraction.output_paths)
        paths.extend(self.transcription.output_paths)
        return [p for p in paths if p]


class TriggerResult(BaseModel):
    """
    Outcome of an accepted stage trigger.

    status is one of:
    - started / already_completed (extraction)
    - transcription_started / transcription_already_completed
    """

    model_config = ConfigDict(extra="forbid")

    status: str
    job_id: str
    download_url: Optional[str] = None
    transcript_txt_url: Optional[str] = None
    transcript_srt_url: Optional[str] = None

    @property
    def started(self) -> bool:
        return self.status.endswith("started")
