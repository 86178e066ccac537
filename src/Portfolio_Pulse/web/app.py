"""FastAPI app factory: shared run, routers, middleware and lifespan."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from Portfolio_Pulse.agents.analyst import OllamaAnalyst
from Portfolio_Pulse.config import PipelineSettings, load_settings
from Portfolio_Pulse.logging_config import configure_logging
from Portfolio_Pulse.models.pipeline import RunSnapshot
from Portfolio_Pulse.pipeline.scheduler import (
    BatchAnalysisRun,
    NarrativeAnalyst,
    PriceSeriesSource,
)
from Portfolio_Pulse.services.benchmark_rates import BcbRateService, RateSeriesSource
from Portfolio_Pulse.services.market_data import MarketDataService
from Portfolio_Pulse.web.middleware import RequestLoggingMiddleware, register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Cancel any driver still ticking a run and close owned clients on shutdown."""
    yield
    tasks: set[asyncio.Task[RunSnapshot]] = app.state.driver_tasks
    for task in list(tasks):
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Cancelled %d run driver(s) on shutdown", len(tasks))
    for client in app.state.owned_clients:
        await client.aclose()


def create_app(
    settings: PipelineSettings | None = None,
    *,
    price_source: PriceSeriesSource | None = None,
    analyst: NarrativeAnalyst | None = None,
    rate_source: RateSeriesSource | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The batch run and the external ports are built once here and shared
    through ``app.state``; tests pass fakes for the ports. HTTP clients the
    factory builds itself are closed when the app shuts down.
    """
    configure_logging()

    settings = settings or load_settings()
    price_source = price_source or MarketDataService(symbol_suffix=settings.symbol_suffix)
    analyst = analyst or OllamaAnalyst.from_settings(settings)
    owned_clients: list[BcbRateService] = []
    if rate_source is None:
        rate_source = BcbRateService()
        owned_clients.append(rate_source)

    app = FastAPI(title="Portfolio Pulse", docs_url=None, redoc_url=None, lifespan=_lifespan)

    app.state.settings = settings
    app.state.price_source = price_source
    app.state.rate_source = rate_source
    app.state.owned_clients = owned_clients
    app.state.run = BatchAnalysisRun(price_source, analyst, settings)
    app.state.driver_tasks = set()

    register_exception_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)

    # Routes
    from Portfolio_Pulse.web.routes import batch_router, simulation_router

    app.include_router(batch_router, prefix="/api")
    app.include_router(simulation_router, prefix="/api")

    @app.get("/api/health")
    async def health_check() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    logger.info(
        "Portfolio Pulse web app created (model=%s, cooldown=%.0fs)",
        settings.ollama_model,
        settings.cooldown_seconds,
    )
    return app
