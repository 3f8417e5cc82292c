"""
Job engine orchestration logic.

Accepts stage triggers, runs one supervised worker thread per accepted
trigger, and turns adapter callbacks into registry updates and broadcasts.

Ordering rules:
- Every state change goes through JobRegistry.mutate()
- The broadcast for a change happens after mutate() returns, never under
  the registry lock
- A terminal state is stored before the final event is broadcast

There are no retries. A failed stage stays failed until triggered again.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from audio_extractor.execution.base import ProgressCallback
from audio_extractor.execution.codec_mapping import output_file_name
from audio_extractor.execution.context import ExecutionContext
from audio_extractor.execution.errors import ArtifactMissingError, ProcessLaunchError
from audio_extractor.execution.ffmpeg import FFmpegExtractor
from audio_extractor.execution.whisper import WhisperTranscriber, artifact_paths
from audio_extractor.monitoring.broadcaster import ProgressBroadcaster
from audio_extractor.monitoring.queries import (
    build_progress_event,
    download_url,
    transcript_url,
)
from .errors import ConflictError, ExtractorError, NotFoundError
from .models import Job, Stage, StageStatus, TriggerResult, new_job_id
from .registry import JobRegistry
from .state import complete_stage, fail_stage, queue_stage, record_progress, start_stage

logger = logging.getLogger(__name__)


# Default stage deadlines
EXTRACTION_TIMEOUT_SECONDS = 30 * 60
TRANSCRIPTION_TIMEOUT_SECONDS = 45 * 60

SHUTDOWN_REASON = "service shutting down"

WorkerKey = Tuple[str, Stage]


class _Worker:
    """A running stage worker: its thread and its context."""

    def __init__(self, thread: threading.Thread, ctx: ExecutionContext):
        self.thread = thread
        self.ctx = ctx


class JobEngine:
    """
    Job orchestration engine.

    Owns the registry, the broadcaster and both adapters. Workers are
    tracked so shutdown() can cancel and join them.
    """

    def __init__(
        self,
        registry: JobRegistry,
        broadcaster: ProgressBroadcaster,
        extractor: FFmpegExtractor,
        transcriber: WhisperTranscriber,
        outputs_dir: str,
        extraction_timeout: float = EXTRACTION_TIMEOUT_SECONDS,
        transcription_timeout: float = TRANSCRIPTION_TIMEOUT_SECONDS,
    ):
        """
        Initialize job engine.

        Args:
            registry: Authoritative job store
            broadcaster: Progress fan-out to observers
            extractor: Audio extraction adapter
            transcriber: Transcription adapter
            outputs_dir: Directory receiving audio and transcript files
            extraction_timeout: Extraction deadline in seconds
            transcription_timeout: Transcription deadline in seconds
        """
        self.registry = registry
        self.broadcaster = broadcaster
        self.extractor = extractor
        self.transcriber = transcriber
        self.outputs_dir = outputs_dir
        self.timeouts: Dict[Stage, float] = {
            Stage.EXTRACTION: extraction_timeout,
            Stage.TRANSCRIPTION: transcription_timeout,
        }

        self._workers: Dict[WorkerKey, _Worker] = {}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._closed = False

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit(
        self,
        input_path: str,
        input_file_name: str,
        format: str = "mp3",
        quality: str = "medium",
        job_id: Optional[str] = None,
    ) -> Job:
        """
        Create and register a job for an already stored input.

        Returns:
            Snapshot of the new job (extraction uploaded)
        """
        job = Job(
            id=job_id or new_job_id(),
            input_path=input_path,
            input_file_name=input_file_name,
            format=format,
            quality=quality,
        )
        self.registry.create(job)
        logger.info(f"[Engine] Job {job.id} created for {input_file_name} ({format}/{quality})")
        return self.registry.get(job.id)

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def trigger_extraction(self, job_id: str) -> TriggerResult:
        """
        Queue extraction and start a worker.

        Returns:
            TriggerResult with status started or already_completed

        Raises:
            NotFoundError: Unknown or expired job
            ConflictError: Extraction already queued or processing
        """
        job = self._queue(job_id, Stage.EXTRACTION)
        if job is None:
            return TriggerResult(status="started", job_id=job_id)
        return TriggerResult(
            status="already_completed",
            job_id=job_id,
            download_url=download_url(job_id),
        )

    def trigger_transcription(self, job_id: str) -> TriggerResult:
        """
        Queue transcription and start a worker.

        Returns:
            TriggerResult with status transcription_started or
            transcription_already_completed

        Raises:
            NotFoundError: Unknown or expired job
            ConflictError: Extraction not completed, or transcription active
        """
        job = self._queue(job_id, Stage.TRANSCRIPTION)
        if job is None:
            return TriggerResult(status="transcription_started", job_id=job_id)
        return TriggerResult(
            status="transcription_already_completed",
            job_id=job_id,
            download_url=download_url(job_id),
            transcript_txt_url=transcript_url(job_id, "txt"),
            transcript_srt_url=transcript_url(job_id, "srt"),
        )

    def _queue(self, job_id: str, stage: Stage) -> Optional[Job]:
        """
        Check-and-transition a stage to QUEUED, then spawn its worker.

        Returns:
            None if a worker was started, the job snapshot if the stage was
            already completed
        """
        with self._lock:
            if self._closed:
                raise ConflictError("Service is shutting down", code="shutting_down")

        job = self.registry.mutate(job_id, lambda j: queue_stage(j, stage))
        if job.stage(stage).status == StageStatus.COMPLETED:
            return job

        logger.info(f"[Engine] {stage.value} queued for job {job_id}")
        self.broadcaster.publish(job_id, build_progress_event(job, stage, "Queued"))
        self._spawn(job_id, stage)
        return None

    def _spawn(self, job_id: str, stage: Stage) -> None:
        ctx = ExecutionContext(timeout=self.timeouts[stage])
        key = (job_id, stage)

        with self._lock:
            closed = self._closed
            if not closed:
                thread = threading.Thread(
                    target=self._run_worker,
                    args=(job_id, stage, ctx),
                    name=f"{stage.value}-{job_id}",
                    daemon=True,
                )
                worker = _Worker(thread, ctx)
                self._workers[key] = worker
                thread.start()

        if closed:
            self._fail(job_id, stage, SHUTDOWN_REASON, "cancelled")

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def _run_worker(self, job_id: str, stage: Stage, ctx: ExecutionContext) -> None:
        """Worker body. Never raises."""
        try:
            if stage == Stage.EXTRACTION:
                self._run_extraction(job_id, ctx)
            else:
                self._run_transcription(job_id, ctx)
        except NotFoundError:
            # Job was reaped while running; nothing left to update
            logger.info(f"[Engine] Job {job_id} disappeared during {stage.value}")
        except ExtractorError as e:
            self._fail(job_id, stage, e.message, e.kind)
        except Exception as e:
            logger.exception(f"[Engine] Unexpected error in {stage.value} worker for job {job_id}")
            self._fail(job_id, stage, f"Internal error: {e}", "internal_error")
        finally:
            ctx.cancel("worker finished")
            with self._lock:
                key = (job_id, stage)
                current = self._workers.get(key)
                if current is not None and current.ctx is ctx:
                    del self._workers[key]
                self._idle.notify_all()

    def _ensure_outputs_dir(self) -> None:
        try:
            Path(self.outputs_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProcessLaunchError(f"Cannot create output directory: {e}") from e

    def _start(self, job_id: str, stage: Stage, paths: List[str], message: str) -> Job:
        names = [Path(p).name for p in paths]
        job = self.registry.mutate(job_id, lambda j: start_stage(j, stage, paths, names))
        self.broadcaster.publish(job_id, build_progress_event(job, stage, message))
        return job

    def _run_extraction(self, job_id: str, ctx: ExecutionContext) -> None:
        stage = Stage.EXTRACTION
        job = self.registry.get(job_id)
        self._ensure_outputs_dir()

        output_path = str(Path(self.outputs_dir) / output_file_name(job.id, job.format))
        job = self._start(job_id, stage, [output_path], "Extracting audio")

        self.extractor.extract(
            ctx,
            job.input_path,
            output_path,
            job.format,
            job.quality,
            self._progress_callback(job_id, stage),
        )
        self._complete(job_id, stage, "Extraction completed")

    def _run_transcription(self, job_id: str, ctx: ExecutionContext) -> None:
        stage = Stage.TRANSCRIPTION
        job = self.registry.get(job_id)
        self._ensure_outputs_dir()

        audio_path = job.output_path
        if not audio_path or not Path(audio_path).is_file():
            raise ArtifactMissingError(audio_path or "extracted audio")

        output_base = str(Path(self.outputs_dir) / f"{job.id}_transcript")
        self._start(job_id, stage, artifact_paths(output_base), "Transcribing audio")

        self.transcriber.transcribe(
            ctx,
            audio_path,
            output_base,
            self._progress_callback(job_id, stage),
        )
        self._complete(job_id, stage, "Transcription completed")

    def _progress_callback(self, job_id: str, stage: Stage) -> ProgressCallback:
        def callback(percent: int, status: str, message: Optional[str]) -> None:
            # A running stage never reports less than the queued value
            percent = max(1, min(100, int(percent)))
            job = self.registry.mutate(job_id, lambda j: record_progress(j, stage, percent))
            self.broadcaster.publish(job_id, build_progress_event(job, stage, message))

        return callback

    def _complete(self, job_id: str, stage: Stage, message: str) -> None:
        job = self.registry.mutate(job_id, lambda j: complete_stage(j, stage))
        logger.info(f"[Engine] {stage.value} completed for job {job_id}")
        self.broadcaster.publish(job_id, build_progress_event(job, stage, message))

    def _fail(self, job_id: str, stage: Stage, error: str, kind: str) -> None:
        try:
            job = self.registry.mutate(job_id, lambda j: fail_stage(j, stage, error, kind))
        except NotFoundError:
            return
        except ConflictError as e:
            logger.error(f"[Engine] Could not mark {stage.value} failed for job {job_id}: {e}")
            return
        logger.error(f"[Engine] {stage.value} failed for job {job_id} ({kind}): {error}")
        self.broadcaster.publish(job_id, build_progress_event(job, stage, f"{stage.value.capitalize()} failed"))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def active_workers(self) -> int:
        """Number of in-flight workers."""
        with self._lock:
            return len(self._workers)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no worker is running.

        Returns:
            True if idle, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._workers, timeout=timeout)

    def cancel(self, job_id: str, reason: str = "cancelled") -> int:
        """
        Cancel every running worker of a job.

        Returns:
            Number of workers signalled
        """
        with self._lock:
            workers = [w for (jid, _), w in self._workers.items() if jid == job_id]
        for worker in workers:
            worker.ctx.cancel(reason)
        return len(workers)

    def forget(self, job: Job) -> None:
        """Reaper hook: stop workers and observers of a removed job."""
        self.cancel(job.id, "job expired")
        self.broadcaster.close_job(job.id)

    def shutdown(self, timeout: Optional[float] = 10.0) -> None:
        """
        Cancel every in-flight worker and wait for them to finish.

        New triggers are rejected from here on.
        """
        with self._lock:
            self._closed = True
            workers = list(self._workers.values())

        if workers:
            logger.info(f"[Engine] Cancelling {len(workers)} worker(s)")
        for worker in workers:
            worker.ctx.cancel(SHUTDOWN_REASON)
        for worker in workers:
            worker.thread.join(timeout=timeout)

        self.broadcaster.close_all()

