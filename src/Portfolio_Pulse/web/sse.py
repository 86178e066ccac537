"""Server-Sent Events helpers for streaming batch run snapshots."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable

from sse_starlette.sse import EventSourceResponse

from Portfolio_Pulse.pipeline.scheduler import BatchAnalysisRun

logger = logging.getLogger(__name__)


async def snapshot_events(
    run: BatchAnalysisRun,
    *,
    interval: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncGenerator[str]:
    """Yield JSON snapshots every *interval* seconds while the run is active.

    The snapshot taken once the run stops being active is always sent last,
    so a client that connects to an idle or finished run gets exactly one.
    """
    while True:
        snapshot = run.snapshot()
        yield snapshot.model_dump_json()
        if not run.is_active:
            logger.debug("Snapshot stream closed at status %s", snapshot.status.value)
            return
        await sleep(interval)


def create_sse_response(
    generator: AsyncGenerator[str],
    *,
    media_type: str = "text/event-stream",
) -> EventSourceResponse:
    """Create an SSE response from an async generator of JSON strings."""
    return EventSourceResponse(
        content=generator,
        media_type=media_type,
    )
