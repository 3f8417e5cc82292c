"""
Control endpoints: upload, stage triggers, artifact downloads, health.

Triggers are idempotent:
- an active stage answers 202 already_processing without changing state
- a completed stage answers 200 with its artifact URLs
"""

import logging
from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse

from audio_extractor.jobs.engine import JobEngine
from audio_extractor.jobs.errors import ConflictError, ValidationError
from audio_extractor.jobs.models import StageStatus, TriggerResult, new_job_id, utcnow
from audio_extractor.jobs.validation import (
    normalize_format,
    normalize_quality,
    sanitize_file_name,
    validate_job_id,
)
from audio_extractor.monitoring.models import HealthResponse, JobDetail
from audio_extractor.monitoring.queries import job_detail

logger = logging.getLogger(__name__)

router = APIRouter(tags=["control"])


UPLOAD_CHUNK_BYTES = 1024 * 1024


def _engine(request: Request) -> JobEngine:
    return request.app.state.engine


def _trigger_response(result: TriggerResult) -> JSONResponse:
    status_code = 202 if result.started else 200
    return JSONResponse(status_code=status_code, content=result.model_dump(exclude_none=True))


def _already_processing(job_id: str, status: str) -> JSONResponse:
    return JSONResponse(status_code=202, content={"status": status, "job_id": job_id})


@router.get("/healthz", response_model=HealthResponse)
def health_check():
    """Liveness probe."""
    return HealthResponse(status="ok", timestamp=utcnow())


@router.post("/upload", response_model=JobDetail, status_code=201)
def upload(
    request: Request,
    video: UploadFile = File(...),
    format: str = Form(default=""),
    quality: str = Form(default=""),
):
    """
    Store an uploaded video and create its job.

    Raises:
        400: Unsupported format/quality, or file larger than MAX_UPLOAD_BYTES
    """
    settings = request.app.state.settings
    fmt = normalize_format(format)
    tier = normalize_quality(quality)

    job_id = new_job_id()
    safe_name = sanitize_file_name(video.filename or "")
    uploads_dir = Path(settings.UPLOADS_DIR)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    input_path = uploads_dir / f"{job_id}_{safe_name}"

    written = 0
    try:
        with open(input_path, "wb") as out:
            while True:
                chunk = video.file.read(UPLOAD_CHUNK_BYTES)
                if not chunk:
                    break
                written += len(chunk)
                if written > settings.MAX_UPLOAD_BYTES:
                    raise ValidationError(
                        f"File exceeds the upload limit of {settings.MAX_UPLOAD_BYTES} bytes"
                    )
                out.write(chunk)
    except ValidationError:
        input_path.unlink(missing_ok=True)
        raise
    except OSError as e:
        input_path.unlink(missing_ok=True)
        logger.error(f"Failed to store upload {safe_name}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store upload")

    job = _engine(request).submit(
        input_path=str(input_path),
        input_file_name=safe_name,
        format=fmt,
        quality=tier,
        job_id=job_id,
    )
    logger.info(f"Upload stored for job {job_id}: {safe_name} ({written} bytes)")
    return job_detail(job)


@router.api_route("/extract/{job_id}", methods=["GET", "POST"])
def trigger_extraction(job_id: str, request: Request):
    """
    Start audio extraction for a job.

    Returns:
        202 started | 202 already_processing | 200 already_completed
    """
    validate_job_id(job_id)
    try:
        result = _engine(request).trigger_extraction(job_id)
    except ConflictError as e:
        if e.code == "already_processing":
            return _already_processing(job_id, "already_processing")
        raise
    return _trigger_response(result)


@router.api_route("/transcribe/{job_id}", methods=["GET", "POST"])
def trigger_transcription(job_id: str, request: Request):
    """
    Start transcription of a job's extracted audio.

    Returns:
        202 transcription_started | 202 transcription_already_processing |
        200 transcription_already_completed

    Raises:
        409: Extraction has not completed
    """
    validate_job_id(job_id)
    try:
        result = _engine(request).trigger_transcription(job_id)
    except ConflictError as e:
        if e.code == "already_processing":
            return _already_processing(job_id, "transcription_already_processing")
        raise
    return _trigger_response(result)


@router.get("/download/{job_id}")
def download(job_id: str, request: Request):
    """
    Download the extracted audio.

    Raises:
        404: Unknown job, or the audio file is gone
        409: Extraction has not completed
    """
    validate_job_id(job_id)
    job = request.app.state.registry.get(job_id)
    if job.extraction.status != StageStatus.COMPLETED or not job.output_path:
        raise ConflictError("Audio is not ready yet", code="not_ready")
    if not Path(job.output_path).is_file():
        raise HTTPException(status_code=404, detail="Audio file not found")
    return FileResponse(job.output_path, filename=job.output_name)


@router.get("/transcript/{job_id}")
def download_transcript(job_id: str, request: Request, format: str = Query(default="txt")):
    """
    Download a transcript (format=txt or srt).

    Raises:
        400: Unknown transcript format
        404: Unknown job, or the transcript file is gone
        409: Transcription has not completed
    """
    validate_job_id(job_id)
    fmt = (format or "txt").strip().lower()
    if fmt not in ("txt", "srt"):
        raise ValidationError(f"Unsupported transcript format '{format}'. Expected txt or srt")

    job = request.app.state.registry.get(job_id)
    if job.transcription.status != StageStatus.COMPLETED:
        raise ConflictError("Transcript is not ready yet", code="not_ready")

    path = job.transcript_srt_path if fmt == "srt" else job.transcript_txt_path
    if not path or not Path(path).is_file():
        raise HTTPException(status_code=404, detail="Transcript file not found")
    return FileResponse(path, filename=Path(path).name)
