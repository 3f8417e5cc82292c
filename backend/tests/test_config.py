"""
Tests for settings loading, logging setup, and upload validation helpers.
"""

import logging

import pytest

from audio_extractor.config import Settings
from audio_extractor.jobs.errors import ValidationError
from audio_extractor.jobs.validation import (
    normalize_format,
    normalize_quality,
    sanitize_file_name,
    validate_job_id,
)
from audio_extractor.logging_config import configure_logging


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("APP_PORT", "WHISPER_LANGUAGE", "JOB_TTL_SECONDS", "MAX_UPLOAD_BYTES"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.APP_PORT == 8080
        assert settings.WHISPER_LANGUAGE == "auto"
        assert settings.EXTRACTION_TIMEOUT_SECONDS == 1800
        assert settings.TRANSCRIPTION_TIMEOUT_SECONDS == 2700
        assert settings.CLEANUP_INTERVAL_SECONDS == 1800
        assert settings.JOB_TTL_SECONDS == 86400
        assert settings.MAX_UPLOAD_BYTES == 500 * 1024 * 1024

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "9000")
        monkeypatch.setenv("WHISPER_MODEL", "/models/ggml-small.bin")
        monkeypatch.setenv("CORS_ORIGINS", '["http://localhost:5173"]')
        settings = Settings(_env_file=None)
        assert settings.APP_PORT == 9000
        assert settings.WHISPER_MODEL == "/models/ggml-small.bin"
        assert settings.CORS_ORIGINS == ["http://localhost:5173"]


class TestLogging:
    def test_configure_logging_sets_root_level(self):
        root = logging.getLogger()
        previous_level, previous_handlers = root.level, list(root.handlers)
        try:
            configure_logging("debug")
            assert root.level == logging.DEBUG
            assert any(isinstance(h, logging.StreamHandler) for h in root.handlers)
        finally:
            root.handlers = previous_handlers
            root.setLevel(previous_level)


class TestValidation:
    def test_job_id(self):
        assert validate_job_id("0123456789abcdef") == "0123456789abcdef"
        for bad in ("", "0123456789ABCDEF", "0123456789abcde", "../../etc/passwd"):
            with pytest.raises(ValidationError):
                validate_job_id(bad)

    @pytest.mark.parametrize("raw, expected", [
        ("my video.mp4", "my_video.mp4"),
        ("/tmp/a/b.mov", "b.mov"),
        ("C:\\Users\\me\\clip.avi", "clip.avi"),
        ("vídeo (1).mkv", "v_deo__1_.mkv"),
        ("", "video.bin"),
        ("..", "video.bin"),
    ])
    def test_sanitize_file_name(self, raw, expected):
        assert sanitize_file_name(raw) == expected

    def test_format_and_quality(self):
        assert normalize_format(" FLAC ") == "flac"
        assert normalize_format("") == "mp3"
        assert normalize_quality("") == "medium"
        with pytest.raises(ValidationError):
            normalize_format("opus")
        with pytest.raises(ValidationError):
            normalize_quality("ultra")
