"""Domain-error responses and per-request access logging.

Every handler answers ``{"detail": str(exc)}``. Starlette resolves handlers
along the exception's MRO, so subclasses of :class:`DataFetchError` listed in
the table win over the 502 fallback.
"""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from Portfolio_Pulse.utils.exceptions import (
    ConfigurationError,
    DataFetchError,
    DataSourceUnavailableError,
    InsufficientDataError,
    RateLimitExceededError,
    TickerNotFoundError,
)

logger = logging.getLogger(__name__)

_Handler = Callable[[Request, Exception], Awaitable[JSONResponse]]

# exception type -> (status code, log level)
_ERROR_STATUS: dict[type[Exception], tuple[int, int]] = {
    TickerNotFoundError: (404, logging.WARNING),
    InsufficientDataError: (422, logging.WARNING),
    ConfigurationError: (422, logging.WARNING),
    RateLimitExceededError: (429, logging.WARNING),
    DataSourceUnavailableError: (503, logging.ERROR),
    DataFetchError: (502, logging.ERROR),
}

_QUIET_PATHS: frozenset[str] = frozenset({"/api/health"})


def _make_handler(status: int, level: int) -> _Handler:
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        logger.log(
            level,
            "%s %s -> %d %s: %s",
            request.method,
            request.url.path,
            status,
            type(exc).__name__,
            exc,
        )
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    return handle


def register_exception_handlers(app: FastAPI) -> None:
    for exc_type, (status, level) in _ERROR_STATUS.items():
        app.add_exception_handler(exc_type, _make_handler(status, level))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access-log line per request; health checks log at DEBUG."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        path = request.url.path
        level = logging.DEBUG if path in _QUIET_PATHS else logging.INFO
        logger.log(
            level,
            "%s %s %d %.1fms",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
        )
        return response
