"""Batch analysis API routes.

POST   /api/batch/runs     -- Start a new run, replacing any current one (202 Accepted).
DELETE /api/batch/runs     -- Abandon the current run.
GET    /api/batch/snapshot -- Current run snapshot.
GET    /api/batch/stream   -- SSE stream of snapshots until the run ends.
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict
from sse_starlette.sse import EventSourceResponse

from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.models.market_data import Instrument
from Portfolio_Pulse.models.pipeline import RunSnapshot
from Portfolio_Pulse.pipeline.scheduler import BatchAnalysisRun
from Portfolio_Pulse.web.deps import get_run, get_settings
from Portfolio_Pulse.web.sse import create_sse_response, snapshot_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batch", tags=["batch"])


class RunRequest(BaseModel):
    """Input schema for starting a batch run."""

    model_config = ConfigDict(frozen=True)

    instruments: list[Instrument]


def _spawn_driver(request: Request, run: BatchAnalysisRun) -> None:
    """Drive the run in a background task, keeping a reference until it ends."""
    tasks: set[asyncio.Task[RunSnapshot]] = request.app.state.driver_tasks
    generation = run.generation
    task = asyncio.create_task(run.drive())
    tasks.add(task)

    def _on_done(t: asyncio.Task[RunSnapshot]) -> None:
        tasks.discard(t)
        if t.cancelled():
            logger.info("Driver for run %d cancelled", generation)
            return
        exc = t.exception()
        if exc is not None:
            logger.error("Driver for run %d crashed: %s", generation, exc)

    task.add_done_callback(_on_done)


@router.post("/runs", status_code=202, response_model=RunSnapshot)
async def start_run(
    body: RunRequest,
    request: Request,
    run: Annotated[BatchAnalysisRun, Depends(get_run)],
) -> RunSnapshot:
    """Start a run over the given instruments and return its first snapshot.

    Any run already in progress is discarded; its late responses are ignored.
    """
    generation = run.start_run(body.instruments)
    _spawn_driver(request, run)
    logger.info(
        "Run %d | STARTED | %s",
        generation,
        ", ".join(i.symbol for i in body.instruments),
    )
    return run.snapshot()


@router.delete("/runs", response_model=RunSnapshot)
async def reset_run(run: Annotated[BatchAnalysisRun, Depends(get_run)]) -> RunSnapshot:
    """Abandon the current run."""
    run.reset()
    return run.snapshot()


@router.get("/snapshot", response_model=RunSnapshot)
async def get_snapshot(run: Annotated[BatchAnalysisRun, Depends(get_run)]) -> RunSnapshot:
    return run.snapshot()


@router.get("/stream")
async def stream_snapshots(
    run: Annotated[BatchAnalysisRun, Depends(get_run)],
    settings: Annotated[PipelineSettings, Depends(get_settings)],
) -> EventSourceResponse:
    """Stream JSON-encoded snapshots via Server-Sent Events until the run ends."""
    return create_sse_response(snapshot_events(run, interval=settings.poll_interval_seconds))
