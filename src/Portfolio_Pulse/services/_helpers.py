"""Helpers shared by the market data and benchmark rate services."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from decimal import Decimal, InvalidOperation
from typing import Final, TypeVar

from Portfolio_Pulse.utils.exceptions import (
    DataSourceUnavailableError,
    InsufficientDataError,
    TickerNotFoundError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

YFINANCE_SOURCE: Final[str] = "yfinance"
EXTERNAL_CALL_TIMEOUT_SECONDS: Final[float] = 30.0

MAX_RETRIES: Final[int] = 3
BACKOFF_DELAYS: Final[list[float]] = [1.0, 2.0, 4.0]

# pandas renders missing cells as one of these
_NON_NUMERIC: Final[frozenset[str]] = frozenset({"nan", "inf", "-inf", "none", "nat"})

# Raised by the fetch itself; retrying cannot change the outcome.
_PERMANENT_ERRORS: Final[tuple[type[Exception], ...]] = (
    TickerNotFoundError,
    InsufficientDataError,
)


def safe_decimal(value: object) -> Decimal | None:
    """Decimal built from ``str(value)``, or ``None`` when *value* is not a finite number."""
    if value is None:
        return None
    text = str(value)
    if text.lower() in _NON_NUMERIC:
        return None
    try:
        return Decimal(text)
    except (InvalidOperation, ValueError):
        return None


def _backoff(attempt: int, delays: Sequence[float]) -> float:
    # the last delay repeats once the schedule runs out
    return delays[min(attempt, len(delays) - 1)]


async def fetch_with_retry(
    fetch_fn: Callable[[], Awaitable[T]],
    *,
    ticker: str,
    label: str,
    source: str = YFINANCE_SOURCE,
    max_retries: int = MAX_RETRIES,
    backoff_delays: Sequence[float] | None = None,
) -> T:
    """Await ``fetch_fn()`` up to *max_retries* times, sleeping between tries.

    Data sources surface network trouble through many unrelated exception types,
    so anything other than :class:`TickerNotFoundError` or
    :class:`InsufficientDataError` counts as transient. Those two propagate
    at once.

    Raises:
        DataSourceUnavailableError: Every attempt failed. The message carries
            the last underlying error.
    """
    delays = BACKOFF_DELAYS if backoff_delays is None else backoff_delays
    failure: Exception | None = None

    for attempt in range(max_retries):
        if attempt:
            await asyncio.sleep(_backoff(attempt - 1, delays))
        try:
            return await fetch_fn()
        except _PERMANENT_ERRORS:
            raise
        except Exception as exc:  # noqa: BLE001
            failure = exc
            logger.warning(
                "%s for %s failed on try %d of %d: %r",
                label,
                ticker,
                attempt + 1,
                max_retries,
                exc,
            )

    msg = f"{label} for {ticker} gave up after {max_retries} tries: {failure}"
    raise DataSourceUnavailableError(msg, ticker=ticker, source=source)
