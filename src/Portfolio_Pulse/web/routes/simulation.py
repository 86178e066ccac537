"""Simulation API routes over one instrument's price history.

GET /api/simulation/{symbol}/backtest   -- Value today of an amount invested in the past.
GET /api/simulation/{symbol}/benchmark  -- The same backtest next to the CDI over the window.
GET /api/simulation/{symbol}/projection -- Forward projection at the historical growth rate.
GET /api/simulation/{symbol}/returns    -- 1M/6M/1Y compound returns.
"""

import logging
from decimal import Decimal
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_serializer

from Portfolio_Pulse.analysis.ranking import compute_multi_period_return
from Portfolio_Pulse.analysis.simulation import (
    UNREACHABLE,
    backtest,
    cagr,
    compare_to_benchmark,
    monthly_rate,
    projection_income,
    projection_time,
    projection_time_for_income,
    projection_value,
)
from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.models.enums import LookbackPeriod, ProjectionMode
from Portfolio_Pulse.models.market_data import PriceSeries
from Portfolio_Pulse.models.simulation import (
    BacktestResult,
    BenchmarkComparison,
    MultiPeriodReturn,
)
from Portfolio_Pulse.pipeline.scheduler import PriceSeriesSource
from Portfolio_Pulse.services.benchmark_rates import RateSeriesSource
from Portfolio_Pulse.utils.exceptions import InsufficientDataError
from Portfolio_Pulse.web.deps import (
    get_price_source,
    get_rate_source,
    get_settings,
    validate_symbol,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/simulation", tags=["simulation"])

_SOURCE: str = "simulation"

T = TypeVar("T")


class ProjectionResponse(BaseModel):
    """Outcome of one projection mode.

    ``months`` is ``None`` with ``reachable`` false when the goal can never be
    met at the historical growth rate.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    mode: ProjectionMode
    annual_rate: Decimal | None
    monthly_rate: Decimal
    reachable: bool = True
    months: Decimal | None = None
    value: Decimal | None = None
    income: Decimal | None = None

    @field_serializer("annual_rate", "monthly_rate", "months", "value", "income")
    def serialize_decimal(self, value: Decimal | None) -> str | None:
        """Serialize Decimal fields as strings to preserve precision."""
        return None if value is None else str(value)


async def _load_series(
    source: PriceSeriesSource,
    symbol: str,
    settings: PipelineSettings,
) -> PriceSeries:
    return await source.fetch_price_series(symbol, settings.history_period)


def _require(value: T | None, name: str, mode: ProjectionMode) -> T:
    if value is None:
        raise HTTPException(
            status_code=422,
            detail=f"Projection mode '{mode.value}' requires the '{name}' parameter.",
        )
    return value


def _run_backtest(
    series: PriceSeries,
    symbol: str,
    amount: Decimal,
    period: LookbackPeriod,
) -> BacktestResult:
    current_price = series.last_close
    result = None if current_price is None else backtest(series, current_price, amount, period)
    if result is None:
        raise InsufficientDataError(
            f"Not enough history for a {period.value} backtest of {symbol}",
            ticker=symbol,
            source=_SOURCE,
        )
    return result


@router.get("/{symbol}/backtest", response_model=BacktestResult)
async def get_backtest(
    symbol: Annotated[str, Depends(validate_symbol)],
    source: Annotated[PriceSeriesSource, Depends(get_price_source)],
    settings: Annotated[PipelineSettings, Depends(get_settings)],
    amount: Annotated[Decimal, Query(gt=0)] = Decimal("1000"),
    period: Annotated[LookbackPeriod, Query()] = LookbackPeriod.ONE_YEAR,
) -> BacktestResult:
    """Backtest *amount* invested *period* ago, valued at the last close."""
    series = await _load_series(source, symbol, settings)
    return _run_backtest(series, symbol, amount, period)


@router.get("/{symbol}/benchmark", response_model=BenchmarkComparison)
async def get_benchmark(
    symbol: Annotated[str, Depends(validate_symbol)],
    source: Annotated[PriceSeriesSource, Depends(get_price_source)],
    rate_source: Annotated[RateSeriesSource, Depends(get_rate_source)],
    settings: Annotated[PipelineSettings, Depends(get_settings)],
    amount: Annotated[Decimal, Query(gt=0)] = Decimal("1000"),
    period: Annotated[LookbackPeriod, Query()] = LookbackPeriod.ONE_YEAR,
) -> BenchmarkComparison:
    """Backtest *amount* and compare it with the CDI from the same start date.

    Rates are requested up to the date of the last close, so both legs cover
    the same window.
    """
    series = await _load_series(source, symbol, settings)
    result = _run_backtest(series, symbol, amount, period)
    rates = await rate_source.fetch_rate_series(result.initial_date, series.points[-1].date)
    comparison = compare_to_benchmark(symbol, period, result, amount, rates)
    logger.info(
        "Benchmark %s for %s: excess return %s over %d days",
        rates.name,
        symbol,
        comparison.excess_return,
        comparison.benchmark_days,
    )
    return comparison


@router.get("/{symbol}/projection", response_model=ProjectionResponse)
async def get_projection(
    symbol: Annotated[str, Depends(validate_symbol)],
    source: Annotated[PriceSeriesSource, Depends(get_price_source)],
    settings: Annotated[PipelineSettings, Depends(get_settings)],
    mode: Annotated[ProjectionMode, Query()] = ProjectionMode.VALUE,
    start: Annotated[Decimal, Query(ge=0)] = Decimal("0"),
    monthly: Annotated[Decimal, Query(ge=0)] = Decimal("0"),
    months: Annotated[int | None, Query(ge=0, le=1200)] = None,
    target: Annotated[Decimal | None, Query(gt=0)] = None,
) -> ProjectionResponse:
    """Project the position forward at the instrument's historical CAGR.

    Modes:
        value         -- capital after ``months``.
        goal          -- months until capital reaches ``target``.
        income_value  -- monthly income after ``months``.
        income_goal   -- months until monthly income reaches ``target``.
    """
    series = await _load_series(source, symbol, settings)
    annual = cagr(series)
    response: dict[str, object] = {
        "symbol": symbol,
        "mode": mode,
        "annual_rate": annual,
        "monthly_rate": monthly_rate(annual),
    }

    if mode in (ProjectionMode.VALUE, ProjectionMode.INCOME_VALUE):
        horizon = _require(months, "months", mode)
        response["months"] = Decimal(horizon)
        if mode == ProjectionMode.VALUE:
            response["value"] = projection_value(annual, start, monthly, horizon)
        else:
            response["income"] = projection_income(annual, start, monthly, horizon)
    else:
        goal = _require(target, "target", mode)
        if mode == ProjectionMode.GOAL:
            needed = projection_time(annual, start, monthly, goal)
            response["value"] = goal
        else:
            needed = projection_time_for_income(annual, start, monthly, goal)
            response["income"] = goal
        if needed == UNREACHABLE:
            response["reachable"] = False
        else:
            response["months"] = needed

    logger.info("Projection %s for %s computed", mode.value, symbol)
    return ProjectionResponse.model_validate(response)


@router.get("/{symbol}/returns", response_model=MultiPeriodReturn)
async def get_returns(
    symbol: Annotated[str, Depends(validate_symbol)],
    source: Annotated[PriceSeriesSource, Depends(get_price_source)],
    settings: Annotated[PipelineSettings, Depends(get_settings)],
) -> MultiPeriodReturn:
    """Compound 1M/6M/1Y returns on the configured notional amount."""
    series = await _load_series(source, symbol, settings)
    return compute_multi_period_return(series, notional=settings.notional)
