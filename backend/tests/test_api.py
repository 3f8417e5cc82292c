"""
HTTP and WebSocket surface tests (FastAPI TestClient).
"""

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from audio_extractor.config import Settings
from audio_extractor.main import create_app
from conftest import FFMPEG_OK, FFMPEG_SLOW, FFPROBE_100, WHISPER_OK


@pytest.fixture
def settings(tmp_path, make_script) -> Settings:
    return Settings(
        UPLOADS_DIR=str(tmp_path / "uploads"),
        OUTPUTS_DIR=str(tmp_path / "outputs"),
        MAX_UPLOAD_BYTES=1024,
        FFMPEG_BIN=make_script("ffmpeg", FFMPEG_OK),
        FFPROBE_BIN=make_script("ffprobe", FFPROBE_100),
        WHISPER_BIN=make_script("whisper-cli", WHISPER_OK),
        WHISPER_MODEL="ggml-base.bin",
        TRANSCRIPTION_TICK_SECONDS=0.05,
        CLEANUP_INTERVAL_SECONDS=0,
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def _upload(client, name="my clip.mp4", fmt="mp3", quality="high", data=b"fake video"):
    return client.post(
        "/upload",
        files={"video": (name, data, "video/mp4")},
        data={"format": fmt, "quality": quality},
    )


def _wait_status(client, job_id, stage, status, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        event = client.get(f"/jobs/{job_id}/status").json()
        if event["stage"] == stage and event["status"] == status:
            return event
        time.sleep(0.05)
    raise AssertionError(f"{stage} never reached {status}: {event}")


class TestHealth:
    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert "timestamp" in body


class TestUpload:
    def test_upload_creates_job(self, client, settings):
        response = _upload(client)
        assert response.status_code == 201
        job = response.json()
        assert job["input_file_name"] == "my_clip.mp4"
        assert job["format"] == "mp3"
        assert job["quality"] == "high"
        assert job["extraction"]["status"] == "uploaded"
        assert job["transcription"]["status"] == "not_started"
        assert (Path(settings.UPLOADS_DIR) / f"{job['id']}_my_clip.mp4").read_bytes() == b"fake video"

    def test_empty_format_and_quality_use_defaults(self, client):
        job = _upload(client, fmt="", quality="").json()
        assert job["format"] == "mp3"
        assert job["quality"] == "medium"

    def test_unsupported_format(self, client, settings):
        response = _upload(client, fmt="opus")
        assert response.status_code == 400
        assert "opus" in response.json()["detail"]

    def test_unsupported_quality(self, client):
        assert _upload(client, quality="ultra").status_code == 400

    def test_oversize_upload_is_rejected_and_removed(self, client, settings):
        response = _upload(client, data=b"x" * 2048)
        assert response.status_code == 400
        assert list(Path(settings.UPLOADS_DIR).iterdir()) == []
        assert client.get("/jobs").json()["jobs"] == []

    def test_path_components_are_stripped(self, client):
        job = _upload(client, name="../../etc/pass wd").json()
        assert job["input_file_name"] == "pass_wd"


class TestTriggers:
    def test_extract_then_download(self, client):
        job_id = _upload(client).json()["id"]

        response = client.post(f"/extract/{job_id}")
        assert response.status_code == 202
        assert response.json() == {"status": "started", "job_id": job_id}

        final = _wait_status(client, job_id, "extraction", "completed")
        assert final["progress"] == 100
        assert final["download_url"] == f"/download/{job_id}"

        download = client.get(f"/download/{job_id}")
        assert download.status_code == 200
        assert download.content == b"audio"
        assert f"{job_id}.mp3" in download.headers["content-disposition"]

        again = client.get(f"/extract/{job_id}")
        assert again.status_code == 200
        assert again.json()["status"] == "already_completed"
        assert again.json()["download_url"] == f"/download/{job_id}"

    def test_extract_while_processing(self, tmp_path, settings, make_script):
        settings.FFMPEG_BIN = make_script("ffmpeg-slow", FFMPEG_SLOW)
        with TestClient(create_app(settings)) as client:
            job_id = _upload(client).json()["id"]
            assert client.post(f"/extract/{job_id}").status_code == 202

            response = client.post(f"/extract/{job_id}")
            assert response.status_code == 202
            assert response.json()["status"] == "already_processing"

            # Download is not ready yet
            assert client.get(f"/download/{job_id}").status_code == 409

    def test_transcribe_before_extraction_conflicts(self, client):
        job_id = _upload(client).json()["id"]
        response = client.post(f"/transcribe/{job_id}")
        assert response.status_code == 409
        assert client.get(f"/jobs/{job_id}").json()["transcription"]["status"] == "not_started"

    def test_transcribe_and_fetch_transcripts(self, client):
        job_id = _upload(client).json()["id"]
        client.post(f"/extract/{job_id}")
        _wait_status(client, job_id, "extraction", "completed")

        response = client.post(f"/transcribe/{job_id}")
        assert response.status_code == 202
        assert response.json()["status"] == "transcription_started"

        final = _wait_status(client, job_id, "transcription", "completed")
        assert final["transcript_txt_url"] == f"/transcript/{job_id}?format=txt"

        txt = client.get(f"/transcript/{job_id}")
        assert txt.status_code == 200
        assert txt.text == "hello world\n"
        srt = client.get(f"/transcript/{job_id}?format=srt")
        assert srt.status_code == 200
        assert "-->" in srt.text

        again = client.get(f"/transcribe/{job_id}")
        assert again.status_code == 200
        assert again.json()["status"] == "transcription_already_completed"

    def test_transcript_not_ready(self, client):
        job_id = _upload(client).json()["id"]
        assert client.get(f"/transcript/{job_id}").status_code == 409

    def test_bad_transcript_format(self, client):
        job_id = _upload(client).json()["id"]
        assert client.get(f"/transcript/{job_id}?format=vtt").status_code == 400


class TestQueries:
    def test_unknown_job_is_404(self, client):
        for path in ("/jobs/0123456789abcdef", "/jobs/0123456789abcdef/status", "/extract/0123456789abcdef"):
            assert client.get(path).status_code == 404

    def test_malformed_job_id_is_400(self, client):
        for path in ("/jobs/not-a-job", "/extract/XYZ", "/download/123"):
            assert client.get(path).status_code == 400

    def test_recent_jobs_newest_first(self, client):
        ids = [_upload(client).json()["id"] for _ in range(3)]
        body = client.get("/jobs?limit=2").json()
        assert [j["id"] for j in body["jobs"]] == [ids[2], ids[1]]
        assert body["total_count"] == 2

    def test_status_omits_unset_fields(self, client):
        job_id = _upload(client).json()["id"]
        event = client.get(f"/jobs/{job_id}/status").json()
        assert event == {"id": job_id, "stage": "extraction", "status": "uploaded", "progress": 0}


class TestWebSocket:
    def test_first_message_is_snapshot_then_live_events(self, client):
        job_id = _upload(client).json()["id"]

        with client.websocket_connect(f"/ws/{job_id}") as ws:
            first = ws.receive_json()
            assert first == client.get(f"/jobs/{job_id}/status").json()

            client.post(f"/extract/{job_id}")
            events = []
            while True:
                event = ws.receive_json()
                events.append(event)
                if event["status"] in ("completed", "failed"):
                    break

        assert events[0]["status"] == "queued"
        assert events[-1]["status"] == "completed"
        assert events[-1]["progress"] == 100
        assert events[-1]["download_url"] == f"/download/{job_id}"

    def test_unknown_job_closes_socket(self, client):
        with client.websocket_connect("/ws/0123456789abcdef") as ws:
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
        assert exc.value.code == 4404
