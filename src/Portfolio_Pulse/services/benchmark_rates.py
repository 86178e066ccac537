"""Daily benchmark rates from the Banco Central do Brasil SGS API.

Fetches SGS series 11 (the daily CDI rate) between two dates. The API answers
with ``[{"data": "dd/mm/yyyy", "valor": "0.043739"}, ...]`` where ``valor`` is
a percentage for that business day; it is converted to a fraction
(0.00043739) before it reaches a :class:`RateSeries`.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Sequence
from typing import Final, Protocol

import httpx

from Portfolio_Pulse.models.market_data import RatePoint, RateSeries
from Portfolio_Pulse.services._helpers import fetch_with_retry, safe_decimal
from Portfolio_Pulse.utils.exceptions import DataSourceUnavailableError, InsufficientDataError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BCB_SGS_URL: Final[str] = "https://api.bcb.gov.br/dados/serie/bcdata.sgs.{series}/dados"
CDI_SERIES_ID: Final[int] = 11
CDI_NAME: Final[str] = "CDI"
BCB_SOURCE: Final[str] = "bcb"

BCB_FETCH_TIMEOUT: Final[float] = 15.0
BCB_DATE_FORMAT: Final[str] = "%d/%m/%Y"

HTTP_OK: Final[int] = 200
HTTP_NOT_FOUND: Final[int] = 404


class RateSeriesSource(Protocol):
    async def fetch_rate_series(
        self, start: datetime.date, end: datetime.date
    ) -> RateSeries: ...


class BcbRateService:
    """Async daily-rate source backed by the BCB SGS API.

    Usage::

        service = BcbRateService()
        cdi = await service.fetch_rate_series(date(2024, 1, 2), date(2024, 12, 30))
        await service.aclose()
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        series_id: int = CDI_SERIES_ID,
        name: str = CDI_NAME,
        backoff_delays: Sequence[float] | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=30.0, write=10.0, pool=5.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        self._url = BCB_SGS_URL.format(series=series_id)
        self._name = name
        self._backoff_delays = backoff_delays

    async def aclose(self) -> None:
        """Close the shared httpx client."""
        await self._client.aclose()

    async def fetch_rate_series(self, start: datetime.date, end: datetime.date) -> RateSeries:
        """Fetch every published daily rate between *start* and *end*, inclusive.

        Raises:
            ValueError: If *end* is before *start*.
            InsufficientDataError: If the API has no rates for the range.
            DataSourceUnavailableError: If the API keeps failing or answers
                with something other than a list of rates.
        """
        if end < start:
            msg = f"end {end} is before start {start}"
            raise ValueError(msg)

        payload = await fetch_with_retry(
            lambda: self._fetch_raw(start, end),
            ticker=self._name,
            label=f"Rates({self._name})",
            source=BCB_SOURCE,
            backoff_delays=self._backoff_delays,
        )

        series = self._payload_to_series(payload)
        if not series.points:
            raise InsufficientDataError(
                f"No {self._name} rates between {start} and {end}",
                ticker=self._name,
                source=BCB_SOURCE,
            )

        logger.info("Fetched %d %s rates (%s to %s)", len(series.points), self._name, start, end)
        return series

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _fetch_raw(self, start: datetime.date, end: datetime.date) -> object:
        params: dict[str, str] = {
            "formato": "json",
            "dataInicial": start.strftime(BCB_DATE_FORMAT),
            "dataFinal": end.strftime(BCB_DATE_FORMAT),
        }
        response = await asyncio.wait_for(
            self._client.get(self._url, params=params),
            timeout=BCB_FETCH_TIMEOUT,
        )

        # SGS answers 404 when the range holds no business day
        if response.status_code == HTTP_NOT_FOUND:
            raise InsufficientDataError(
                f"BCB has no {self._name} rates for {start} to {end}",
                ticker=self._name,
                source=BCB_SOURCE,
                http_status=response.status_code,
            )
        if response.status_code != HTTP_OK:
            raise DataSourceUnavailableError(
                f"BCB returned HTTP {response.status_code}.",
                ticker=self._name,
                source=BCB_SOURCE,
                http_status=response.status_code,
            )
        return response.json()

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _payload_to_series(self, payload: object) -> RateSeries:
        """Convert SGS rows to a :class:`RateSeries`, skipping unparseable rows.

        A repeated date keeps its last row.
        """
        if not isinstance(payload, list):
            raise DataSourceUnavailableError(
                f"BCB answered with {type(payload).__name__}, expected a list",
                ticker=self._name,
                source=BCB_SOURCE,
            )

        by_date: dict[datetime.date, RatePoint] = {}
        for row in payload:
            if not isinstance(row, dict):
                continue
            percent = safe_decimal(row.get("valor"))
            try:
                day = datetime.datetime.strptime(str(row.get("data")), BCB_DATE_FORMAT).date()
            except ValueError:
                day = None
            if percent is None or day is None:
                logger.debug("Skipping malformed %s row: %r", self._name, row)
                continue
            by_date[day] = RatePoint(date=day, rate=percent / 100)

        return RateSeries(name=self._name, points=[by_date[d] for d in sorted(by_date)])
