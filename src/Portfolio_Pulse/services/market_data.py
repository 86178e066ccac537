"""Market data service wrapping yfinance for dividend-aware price history.

All yfinance calls are synchronous and wrapped in ``asyncio.to_thread()`` to
avoid blocking the event loop. Results are converted to a typed
:class:`PriceSeries` before returning.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Final

import pandas as pd
import yfinance as yf  # type: ignore[import-untyped]

from Portfolio_Pulse.models.market_data import PricePoint, PriceSeries
from Portfolio_Pulse.services._helpers import (
    EXTERNAL_CALL_TIMEOUT_SECONDS,
    YFINANCE_SOURCE,
    fetch_with_retry,
    safe_decimal,
)
from Portfolio_Pulse.utils.exceptions import DataSourceUnavailableError, TickerNotFoundError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_PERIOD: Final[str] = "2y"
CLOSE_COLUMN: Final[str] = "Close"
DIVIDENDS_COLUMN: Final[str] = "Dividends"


class MarketDataService:
    """Async price-history source backed by yfinance.

    Usage::

        service = MarketDataService(symbol_suffix=".SA")
        series = await service.fetch_price_series("PETR4", "2y")

    ``symbol_suffix`` is appended to bare symbols before they reach yfinance
    (e.g. ``.SA`` for B3 listings); the returned series keeps the symbol as
    requested.
    """

    def __init__(
        self,
        symbol_suffix: str = "",
        *,
        backoff_delays: list[float] | None = None,
    ) -> None:
        self._symbol_suffix = symbol_suffix.strip().upper()
        self._backoff_delays = backoff_delays

    def provider_symbol(self, symbol: str) -> str:
        """Symbol as yfinance expects it."""
        symbol = symbol.upper().strip()
        if self._symbol_suffix and "." not in symbol:
            return f"{symbol}{self._symbol_suffix}"
        return symbol

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_price_series(
        self,
        symbol: str,
        period: str = DEFAULT_PERIOD,
    ) -> PriceSeries:
        """Fetch daily closes and dividends for *symbol*.

        Args:
            symbol: Ticker symbol (e.g., ``"AAPL"``).
            period: yfinance period string (default ``"2y"``).

        Returns:
            An ascending :class:`PriceSeries`.

        Raises:
            TickerNotFoundError: If yfinance returns no rows.
            DataSourceUnavailableError: If yfinance is unreachable or the
                frame lacks a close column.
        """
        symbol = symbol.upper().strip()
        provider_symbol = self.provider_symbol(symbol)

        raw_df = await fetch_with_retry(
            lambda: self._fetch_raw_history(provider_symbol, period),
            ticker=symbol,
            label=f"History({provider_symbol})",
            backoff_delays=self._backoff_delays,
        )

        self._validate_history_dataframe(raw_df, symbol, period)
        series = self._dataframe_to_series(raw_df, symbol)
        if series.is_empty:
            raise TickerNotFoundError(
                f"No usable closes for ticker '{symbol}' with period '{period}'",
                ticker=symbol,
                source=YFINANCE_SOURCE,
            )

        logger.info("Fetched %d closes for %s (%s)", len(series.points), symbol, period)
        return series

    # ------------------------------------------------------------------
    # Raw yfinance calls (sync, wrapped in asyncio.to_thread)
    # ------------------------------------------------------------------

    async def _fetch_raw_history(self, ticker: str, period: str) -> pd.DataFrame:
        """Fetch raw price history, dividends included, from yfinance in a thread."""

        def _sync_fetch() -> pd.DataFrame:
            t = yf.Ticker(ticker)
            df: pd.DataFrame = t.history(period=period, actions=True, auto_adjust=False)
            return df

        return await asyncio.wait_for(
            asyncio.to_thread(_sync_fetch),
            timeout=EXTERNAL_CALL_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_history_dataframe(df: pd.DataFrame | None, ticker: str, period: str) -> None:
        if df is None or df.empty:
            raise TickerNotFoundError(
                f"No data returned for ticker '{ticker}' with period '{period}'",
                ticker=ticker,
                source=YFINANCE_SOURCE,
            )
        if CLOSE_COLUMN not in df.columns:
            raise DataSourceUnavailableError(
                f"Missing '{CLOSE_COLUMN}' column in history for {ticker}",
                ticker=ticker,
                source=YFINANCE_SOURCE,
            )

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _dataframe_to_series(df: pd.DataFrame, ticker: str) -> PriceSeries:
        """Convert a yfinance history DataFrame to a :class:`PriceSeries`.

        yfinance uses a timezone-aware DatetimeIndex; only the date part is
        kept. Rows without a positive close are skipped, and a repeated date
        keeps its last row.
        """
        has_dividends = DIVIDENDS_COLUMN in df.columns
        by_date: dict[datetime.date, PricePoint] = {}

        for idx, row in df.iterrows():
            point_date: datetime.date = (
                idx.date() if isinstance(idx, pd.Timestamp) else pd.Timestamp(str(idx)).date()
            )
            close = safe_decimal(row[CLOSE_COLUMN])
            if close is None or close <= 0:
                logger.debug("Skipping row without close for %s at %s", ticker, point_date)
                continue

            dividend = safe_decimal(row[DIVIDENDS_COLUMN]) if has_dividends else None
            by_date[point_date] = PricePoint(
                date=point_date,
                close=close,
                dividend=dividend if dividend else None,
            )

        points = [by_date[d] for d in sorted(by_date)]
        return PriceSeries(symbol=ticker, points=points)
