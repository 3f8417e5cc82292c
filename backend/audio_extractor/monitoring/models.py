"""
Response models for the monitoring API.

All responses are read-only views of job state.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from audio_extractor.jobs.models import Stage, StageStatus


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = "ok"
    timestamp: datetime


class ProgressEvent(BaseModel):
    """
    Normalized progress message pushed to observers and returned by polls.

    Computed fresh from a job snapshot; never stored.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    stage: Stage
    status: StageStatus
    progress: int
    message: Optional[str] = None
    error: Optional[str] = None
    download_url: Optional[str] = None
    transcript_txt_url: Optional[str] = None
    transcript_srt_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with unset fields omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class StageDetail(BaseModel):
    """View of one stage of a job."""

    model_config = ConfigDict(extra="forbid")

    status: StageStatus
    progress: int
    error: Optional[str] = None
    error_kind: Optional[str] = None
    output_names: List[str]
    updated_at: datetime


class JobDetail(BaseModel):
    """
    Point-in-time view of a job.

    File system paths are not exposed; artifacts are reached through URLs.
    """

    model_config = ConfigDict(extra="forbid")

    # Identity
    id: str
    input_file_name: str

    # Declared output
    format: str
    quality: str

    # Stages
    extraction: StageDetail
    transcription: StageDetail

    # Artifact links (present once the stage completed)
    download_url: Optional[str] = None
    transcript_txt_url: Optional[str] = None
    transcript_srt_url: Optional[str] = None

    # Timestamps
    created_at: datetime
    updated_at: datetime


class JobListResponse(BaseModel):
    """Response for listing recent jobs."""

    model_config = ConfigDict(extra="forbid")

    jobs: List[JobDetail]
    total_count: int
