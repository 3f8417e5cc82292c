"""
Tests for stage state transitions.

Transforms are exercised directly on Job objects (no registry, no I/O).
"""

import pytest

from audio_extractor.jobs.errors import ConflictError, InvalidStateTransitionError
from audio_extractor.jobs.models import Job, Stage, StageRecord, StageStatus
from audio_extractor.jobs.state import (
    QUEUED_PROGRESS,
    can_transition_stage,
    complete_stage,
    fail_stage,
    queue_stage,
    record_progress,
    start_stage,
)


@pytest.fixture
def job() -> Job:
    return Job(input_path="/tmp/in.mp4", input_file_name="in.mp4")


def _completed_extraction(job: Job) -> Job:
    queue_stage(job, Stage.EXTRACTION)
    start_stage(job, Stage.EXTRACTION, ["/tmp/out.mp3"], ["out.mp3"])
    complete_stage(job, Stage.EXTRACTION)
    return job


class TestTransitionTable:
    def test_idle_states_can_queue(self):
        for status in (StageStatus.NOT_STARTED, StageStatus.UPLOADED, StageStatus.FAILED):
            assert can_transition_stage(status, StageStatus.QUEUED)

    def test_processing_only_from_queued(self):
        assert can_transition_stage(StageStatus.QUEUED, StageStatus.PROCESSING)
        for status in (StageStatus.NOT_STARTED, StageStatus.UPLOADED, StageStatus.FAILED, StageStatus.COMPLETED):
            assert not can_transition_stage(status, StageStatus.PROCESSING)

    def test_completed_is_terminal(self):
        for status in StageStatus:
            assert not can_transition_stage(StageStatus.COMPLETED, status)

    def test_queued_can_fail_before_start(self):
        assert can_transition_stage(StageStatus.QUEUED, StageStatus.FAILED)


class TestQueueStage:
    def test_new_job_defaults(self, job):
        assert job.extraction.status == StageStatus.UPLOADED
        assert job.transcription.status == StageStatus.NOT_STARTED

    def test_queue_extraction(self, job):
        assert queue_stage(job, Stage.EXTRACTION) is True
        assert job.extraction.status == StageStatus.QUEUED
        assert job.extraction.progress == QUEUED_PROGRESS

    def test_active_stage_is_a_conflict(self, job):
        queue_stage(job, Stage.EXTRACTION)
        with pytest.raises(ConflictError) as exc:
            queue_stage(job, Stage.EXTRACTION)
        assert exc.value.code == "already_processing"

        start_stage(job, Stage.EXTRACTION, ["/tmp/out.mp3"], ["out.mp3"])
        with pytest.raises(ConflictError):
            queue_stage(job, Stage.EXTRACTION)
        assert job.extraction.status == StageStatus.PROCESSING

    def test_completed_stage_is_a_noop(self, job):
        _completed_extraction(job)
        before = job.extraction
        assert queue_stage(job, Stage.EXTRACTION) is False
        assert job.extraction == before

    def test_transcription_requires_completed_extraction(self, job):
        with pytest.raises(ConflictError) as exc:
            queue_stage(job, Stage.TRANSCRIPTION)
        assert exc.value.code == "extraction_incomplete"
        assert job.transcription.status == StageStatus.NOT_STARTED

    def test_transcription_after_extraction(self, job):
        _completed_extraction(job)
        assert queue_stage(job, Stage.TRANSCRIPTION) is True
        assert job.transcription.status == StageStatus.QUEUED

    def test_failed_stage_can_be_retriggered(self, job):
        queue_stage(job, Stage.EXTRACTION)
        start_stage(job, Stage.EXTRACTION, ["/tmp/out.mp3"], ["out.mp3"])
        record_progress(job, Stage.EXTRACTION, 40)
        fail_stage(job, Stage.EXTRACTION, "boom", "execution_error")
        assert job.extraction.progress == 0

        queue_stage(job, Stage.EXTRACTION)
        assert job.extraction.status == StageStatus.QUEUED
        assert job.extraction.error == ""
        assert job.extraction.error_kind == ""
        assert job.extraction.progress == QUEUED_PROGRESS

    def test_requeueing_extraction_resets_transcription(self, job):
        _completed_extraction(job)
        queue_stage(job, Stage.TRANSCRIPTION)
        start_stage(job, Stage.TRANSCRIPTION, ["/tmp/t.txt", "/tmp/t.srt"], ["t.txt", "t.srt"])
        fail_stage(job, Stage.TRANSCRIPTION, "boom", "execution_error")

        # Force a failed extraction so it can be re-queued
        job.extraction = StageRecord(status=StageStatus.FAILED)
        queue_stage(job, Stage.EXTRACTION)
        assert job.transcription.status == StageStatus.NOT_STARTED
        assert job.transcription.output_paths == ()


class TestProgress:
    def test_progress_never_decreases(self, job):
        queue_stage(job, Stage.EXTRACTION)
        start_stage(job, Stage.EXTRACTION, ["/tmp/out.mp3"], ["out.mp3"])
        record_progress(job, Stage.EXTRACTION, 60)
        record_progress(job, Stage.EXTRACTION, 30)
        assert job.extraction.progress == 60

    def test_progress_is_clamped(self, job):
        queue_stage(job, Stage.EXTRACTION)
        start_stage(job, Stage.EXTRACTION, ["/tmp/out.mp3"], ["out.mp3"])
        record_progress(job, Stage.EXTRACTION, 250)
        assert job.extraction.progress == 100

    def test_progress_requires_processing(self, job):
        with pytest.raises(InvalidStateTransitionError):
            record_progress(job, Stage.EXTRACTION, 10)

    def test_complete_sets_100_and_clears_error(self, job):
        _completed_extraction(job)
        assert job.extraction.status == StageStatus.COMPLETED
        assert job.extraction.progress == 100
        assert job.output_path == "/tmp/out.mp3"


class TestStageRecord:
    def test_records_are_immutable(self):
        record = StageRecord()
        with pytest.raises(Exception):
            record.progress = 10

    def test_replace_bumps_updated_at(self):
        record = StageRecord()
        updated = record.replace(progress=5)
        assert updated.progress == 5
        assert record.progress == 0
        assert updated.updated_at >= record.updated_at
