"""
Audio extractor service: upload, extract, transcribe, observe.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from audio_extractor.config import Settings, get_settings
from audio_extractor.execution.ffmpeg import FFmpegExtractor
from audio_extractor.execution.whisper import WhisperTranscriber
from audio_extractor.jobs.engine import JobEngine
from audio_extractor.jobs.reaper import Reaper
from audio_extractor.jobs.registry import JobRegistry
from audio_extractor.monitoring import server as monitoring
from audio_extractor.monitoring.broadcaster import ProgressBroadcaster
from audio_extractor.routes import control
from audio_extractor.routes.errors import install_exception_handlers

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and wire every component explicitly.

    Components are stored on app.state:
    settings, registry, broadcaster, engine, reaper.
    """
    settings = settings or get_settings()

    registry = JobRegistry(ttl_seconds=settings.JOB_TTL_SECONDS)
    broadcaster = ProgressBroadcaster(registry, queue_size=settings.SUBSCRIBER_QUEUE_SIZE)
    engine = JobEngine(
        registry=registry,
        broadcaster=broadcaster,
        extractor=FFmpegExtractor(settings.FFMPEG_BIN, settings.FFPROBE_BIN),
        transcriber=WhisperTranscriber(
            whisper_path=settings.WHISPER_BIN,
            model_path=settings.WHISPER_MODEL,
            language=settings.WHISPER_LANGUAGE,
            tick_interval=settings.TRANSCRIPTION_TICK_SECONDS,
        ),
        outputs_dir=settings.OUTPUTS_DIR,
        extraction_timeout=settings.EXTRACTION_TIMEOUT_SECONDS,
        transcription_timeout=settings.TRANSCRIPTION_TIMEOUT_SECONDS,
    )
    reaper = Reaper(
        registry,
        interval=settings.CLEANUP_INTERVAL_SECONDS,
        ttl=settings.JOB_TTL_SECONDS,
        on_removed=engine.forget,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Path(settings.UPLOADS_DIR).mkdir(parents=True, exist_ok=True)
        Path(settings.OUTPUTS_DIR).mkdir(parents=True, exist_ok=True)
        reaper.start()
        logger.info("Audio extractor started")
        try:
            yield
        finally:
            reaper.stop()
            engine.shutdown()
            logger.info("Audio extractor stopped")

    app = FastAPI(title="Audio Extractor", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.engine = engine
    app.state.reaper = reaper

    install_exception_handlers(app)

    app.include_router(control.router)
    app.include_router(monitoring.router)

    return app
