"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8080

    # Storage
    UPLOADS_DIR: str = "uploads"
    OUTPUTS_DIR: str = "outputs"
    MAX_UPLOAD_BYTES: int = 500 * 1024 * 1024

    # FFmpeg
    FFMPEG_BIN: str = "ffmpeg"
    FFPROBE_BIN: str = "ffprobe"

    # whisper.cpp
    WHISPER_BIN: str = "whisper-cli"
    WHISPER_MODEL: str = ""
    WHISPER_LANGUAGE: str = "auto"

    # Stage deadlines
    EXTRACTION_TIMEOUT_SECONDS: float = 30 * 60
    TRANSCRIPTION_TIMEOUT_SECONDS: float = 45 * 60
    TRANSCRIPTION_TICK_SECONDS: float = 2.0

    # Reaper
    CLEANUP_INTERVAL_SECONDS: float = 30 * 60
    JOB_TTL_SECONDS: float = 24 * 60 * 60

    # Observers
    SUBSCRIBER_QUEUE_SIZE: int = 64

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    """Settings loaded once per process."""
    return Settings()
