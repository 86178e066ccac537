"""Dependency providers for FastAPI route handlers.

Shared resources live on ``app.state`` and are handed to routes through
``Depends()``; route handlers never construct them.
"""

import logging
import re
from typing import Annotated

from fastapi import HTTPException, Path, Request

from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.pipeline.scheduler import BatchAnalysisRun, PriceSeriesSource
from Portfolio_Pulse.services.benchmark_rates import RateSeriesSource

logger = logging.getLogger(__name__)

# Exchange suffixes (".SA") and index/class markers ("^", "-") are allowed.
_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=]{0,14}$")


async def get_run(request: Request) -> BatchAnalysisRun:
    """Return the application's batch run."""
    run: BatchAnalysisRun = request.app.state.run
    return run


async def get_settings(request: Request) -> PipelineSettings:
    settings: PipelineSettings = request.app.state.settings
    return settings


async def get_price_source(request: Request) -> PriceSeriesSource:
    """Return the shared price history source."""
    source: PriceSeriesSource = request.app.state.price_source
    return source


async def get_rate_source(request: Request) -> RateSeriesSource:
    """Return the shared benchmark rate source."""
    source: RateSeriesSource = request.app.state.rate_source
    return source


async def validate_symbol(
    symbol: Annotated[str, Path(description="Ticker symbol, e.g. AAPL or PETR4.SA")],
) -> str:
    """Normalize a ticker symbol path parameter to uppercase.

    Raises HTTP 422 if the symbol contains characters no exchange uses.
    """
    normalized = symbol.strip().upper()
    if not _SYMBOL_PATTERN.match(normalized):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid ticker symbol: '{symbol}'.",
        )
    return normalized
