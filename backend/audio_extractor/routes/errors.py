"""
Exception handlers mapping the job error taxonomy to HTTP responses.

ValidationError -> 400, NotFoundError -> 404, ConflictError -> 409.
Body: {"detail": <message>} (conflicts also carry their code).
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from audio_extractor.jobs.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=400, content={"detail": exc.message})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.message})

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        return JSONResponse(
            status_code=409,
            content={"detail": exc.message, "code": exc.code},
        )
