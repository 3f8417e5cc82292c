"""
Monitoring endpoints.

Read-only views of job state: recent jobs, job detail, the poll-based
progress event, and the WebSocket push channel.

Errors raised here (ValidationError, NotFoundError) are mapped to HTTP
responses by the handlers installed in routes/errors.py.
"""

import asyncio
import logging

from fastapi import APIRouter, Query, Request, WebSocket
from starlette.concurrency import run_in_threadpool

from audio_extractor.jobs.errors import ExtractorError, NotFoundError
from audio_extractor.jobs.validation import validate_job_id
from .broadcaster import Subscription
from .models import JobDetail, JobListResponse
from .queries import get_job_detail, get_job_summaries

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitoring"])


# Seconds a threadpool worker blocks waiting for the next event
EVENT_POLL_SECONDS = 0.5

# Application close codes for the push channel
WS_CLOSE_NOT_FOUND = 4404
WS_CLOSE_INVALID = 4400


@router.get("/jobs", response_model=JobListResponse)
def list_jobs(request: Request, limit: int = Query(default=10, ge=0)):
    """
    List recent jobs, most recently updated first.

    Args:
        limit: Maximum number of jobs (0 for all)
    """
    registry = request.app.state.registry
    return get_job_summaries(registry, limit)


@router.get("/jobs/{job_id}", response_model=JobDetail)
def get_job(job_id: str, request: Request):
    """
    Point-in-time snapshot of a job.

    Raises:
        400: Malformed job id
        404: Unknown or expired job
    """
    validate_job_id(job_id)
    return get_job_detail(request.app.state.registry, job_id)


@router.get("/jobs/{job_id}/status")
def get_job_status(job_id: str, request: Request):
    """
    Poll fallback for the push channel.

    Returns the same event a new WebSocket subscriber receives first.
    """
    validate_job_id(job_id)
    return request.app.state.broadcaster.snapshot(job_id).to_dict()


async def _pump_events(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        event = await run_in_threadpool(subscription.get, EVENT_POLL_SECONDS)
        if event is None:
            if subscription.closed:
                return
            continue
        await websocket.send_json(event.to_dict())


async def _wait_disconnect(websocket: WebSocket) -> None:
    # Client messages are ignored; reading only detects the disconnect
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/{job_id}")
async def job_progress_ws(websocket: WebSocket, job_id: str):
    """
    Push channel for one job.

    The first message is the current snapshot event, followed by every
    live event until the client disconnects or the job is removed.
    """
    broadcaster = websocket.app.state.broadcaster
    await websocket.accept()

    try:
        validate_job_id(job_id)
        subscription = broadcaster.subscribe(job_id)
    except NotFoundError as e:
        await websocket.close(code=WS_CLOSE_NOT_FOUND, reason=e.message)
        return
    except ExtractorError as e:
        await websocket.close(code=WS_CLOSE_INVALID, reason=e.message)
        return

    logger.info(f"[Broadcast] WS connected for job {job_id}")
    pump = asyncio.ensure_future(_pump_events(websocket, subscription))
    watcher = asyncio.ensure_future(_wait_disconnect(websocket))
    try:
        done, pending = await asyncio.wait(
            {pump, watcher}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        if pump in done and pump.exception() is None:
            # Subscription closed server-side (evicted, job removed, shutdown)
            await websocket.close()
    finally:
        broadcaster.unsubscribe(subscription)
        logger.info(f"[Broadcast] WS closed for job {job_id}")
