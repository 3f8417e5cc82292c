"""
Run the service: python -m audio_extractor
"""

import uvicorn

from audio_extractor.config import get_settings
from audio_extractor.logging_config import configure_logging
from audio_extractor.main import create_app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(
        create_app(settings),
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
