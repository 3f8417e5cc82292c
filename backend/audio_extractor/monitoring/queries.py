"""
Query layer for read-only job state access.

Every view of a job (poll, push snapshot, detail, list) is built here from
a registry snapshot, so all of them describe the same state model.
"""

from typing import Optional

from audio_extractor.jobs.models import Job, Stage, StageRecord, StageStatus
from audio_extractor.jobs.registry import JobRegistry
from .models import JobDetail, JobListResponse, ProgressEvent, StageDetail


def download_url(job_id: str) -> str:
    return f"/download/{job_id}"


def transcript_url(job_id: str, fmt: str) -> str:
    return f"/transcript/{job_id}?format={fmt}"


def _artifact_urls(job: Job) -> dict:
    urls = {}
    if job.extraction.status == StageStatus.COMPLETED:
        urls["download_url"] = download_url(job.id)
    if job.transcription.status == StageStatus.COMPLETED:
        urls["transcript_txt_url"] = transcript_url(job.id, "txt")
        urls["transcript_srt_url"] = transcript_url(job.id, "srt")
    return urls


def reported_stage(job: Job) -> Stage:
    """Transcription once it has been touched, extraction otherwise."""
    if job.transcription.status != StageStatus.NOT_STARTED:
        return Stage.TRANSCRIPTION
    return Stage.EXTRACTION


def build_progress_event(
    job: Job,
    stage: Optional[Stage] = None,
    message: Optional[str] = None,
) -> ProgressEvent:
    """
    Build the progress event describing `stage` of a job snapshot.

    Args:
        job: Registry snapshot
        stage: Stage to describe (default: reported_stage(job))
        message: Optional human-readable note

    Returns:
        ProgressEvent with URLs for every completed stage
    """
    stage = Stage(stage) if stage is not None else reported_stage(job)
    record = job.stage(stage)
    return ProgressEvent(
        id=job.id,
        stage=stage,
        status=record.status,
        progress=record.progress,
        message=message,
        error=record.error or None,
        **_artifact_urls(job),
    )


def _stage_detail(record: StageRecord) -> StageDetail:
    return StageDetail(
        status=record.status,
        progress=record.progress,
        error=record.error or None,
        error_kind=record.error_kind or None,
        output_names=list(record.output_names),
        updated_at=record.updated_at,
    )


def job_detail(job: Job) -> JobDetail:
    return JobDetail(
        id=job.id,
        input_file_name=job.input_file_name,
        format=job.format,
        quality=job.quality,
        extraction=_stage_detail(job.extraction),
        transcription=_stage_detail(job.transcription),
        created_at=job.created_at,
        updated_at=job.updated_at,
        **_artifact_urls(job),
    )


def get_job_detail(registry: JobRegistry, job_id: str) -> JobDetail:
    """
    Raises:
        NotFoundError: If the job does not exist or has expired
    """
    return job_detail(registry.get(job_id))


def get_job_summaries(registry: JobRegistry, limit: int = 10) -> JobListResponse:
    """Recent jobs, most recently updated first."""
    jobs = [job_detail(job) for job in registry.list_jobs(limit)]
    return JobListResponse(jobs=jobs, total_count=len(jobs))
