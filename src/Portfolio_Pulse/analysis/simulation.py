"""Backtest and forward-projection math over dividend-aware price series.

Pure functions with no I/O. Monetary values are ``Decimal`` throughout and
rates are fractions (0.12 == 12%); formatting as percentages happens at the
presentation edge.

Conventions:
    * A year is 365 days and a month is one twelfth of a year's growth, so a
      CAGR ``g`` compounds monthly at ``(1 + g) ** (1/12) - 1``.
    * Lookback windows are fixed day counts (see :data:`LOOKBACK_DAYS`).
    * :data:`UNREACHABLE` (positive infinity) is returned by the time solvers
      when the target can never be reached.
    * Benchmark rates such as the CDI are published per business day, and a
      year has :data:`BUSINESS_DAYS_PER_YEAR` of them.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Final

from Portfolio_Pulse.models.enums import LookbackPeriod
from Portfolio_Pulse.models.market_data import PriceSeries, RatePoint, RateSeries
from Portfolio_Pulse.models.simulation import BacktestResult, BenchmarkComparison

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DAYS_PER_YEAR: Final[Decimal] = Decimal("365")
MONTHS_PER_YEAR: Final[Decimal] = Decimal("12")
BUSINESS_DAYS_PER_YEAR: Final[Decimal] = Decimal("252")

LOOKBACK_DAYS: Final[dict[LookbackPeriod, int]] = {
    LookbackPeriod.ONE_MONTH: 30,
    LookbackPeriod.SIX_MONTHS: 180,
    LookbackPeriod.ONE_YEAR: 365,
    LookbackPeriod.FIVE_YEARS: 1825,
}

UNREACHABLE: Final[Decimal] = Decimal("Infinity")

_ZERO: Final[Decimal] = Decimal("0")
_ONE: Final[Decimal] = Decimal("1")


# ---------------------------------------------------------------------------
# Growth rates
# ---------------------------------------------------------------------------


def cagr(series: PriceSeries) -> Decimal | None:
    """Compound annual growth rate between the first and last observation.

    Args:
        series: Ascending price series.

    Returns:
        The annualized growth rate as a fraction, or ``None`` when it is
        undefined: fewer than two points, a non-positive start price, or no
        elapsed time between the endpoints.
    """
    if len(series.points) < 2:
        return None

    first = series.points[0]
    last = series.points[-1]
    elapsed_days = (last.date - first.date).days
    if first.close <= 0 or elapsed_days <= 0:
        return None

    years = Decimal(elapsed_days) / DAYS_PER_YEAR
    growth = last.close / first.close
    if growth == 0:
        return -_ONE
    return growth ** (_ONE / years) - _ONE


def monthly_rate(annual_rate: Decimal | None) -> Decimal:
    """Monthly rate equivalent to *annual_rate*; zero when it is None or zero.

    A total loss (annual rate at or below -100%) maps to a monthly rate of -1.
    """
    if not annual_rate:
        return _ZERO
    base = _ONE + annual_rate
    if base <= 0:
        return -_ONE
    return base ** (_ONE / MONTHS_PER_YEAR) - _ONE


# ---------------------------------------------------------------------------
# Backtest
# ---------------------------------------------------------------------------


def backtest(
    series: PriceSeries,
    current_price: Decimal,
    invested_amount: Decimal,
    lookback: LookbackPeriod,
    *,
    as_of: datetime.date | None = None,
) -> BacktestResult | None:
    """Value today of *invested_amount* bought *lookback* ago.

    The purchase date is the series entry closest to ``as_of - lookback``
    (the earlier entry wins a tie). Two terminal values are produced: a
    simple one where dividends accumulate as cash, and a compound one where
    every dividend from the purchase date onward buys fractional shares at
    that day's close.

    Args:
        series: Ascending price series for the instrument.
        current_price: Price used to value the position today.
        invested_amount: Amount invested at the purchase date.
        lookback: How far back the purchase happened.
        as_of: Reference "today"; defaults to the current date.

    Returns:
        A :class:`BacktestResult`, or ``None`` when the series is empty, has
        no entry on or before the lookback horizon, or the purchase price is
        not positive.
    """
    if series.is_empty:
        return None

    reference = as_of or datetime.date.today()
    horizon = reference - datetime.timedelta(days=LOOKBACK_DAYS[lookback])

    if series.points[0].date > horizon:
        logger.debug(
            "Backtest %s for %s: history starts %s, after horizon %s",
            lookback.value,
            series.symbol,
            series.points[0].date,
            horizon,
        )
        return None

    start_index = 0
    best_gap: int | None = None
    for index, point in enumerate(series.points):
        gap = abs((point.date - horizon).days)
        if best_gap is None or gap < best_gap:
            best_gap = gap
            start_index = index

    start = series.points[start_index]
    if start.close <= 0:
        return None

    initial_shares = invested_amount / start.close
    compound_shares = initial_shares
    dividends_per_share = _ZERO

    window = series.points[start_index:]
    for point in window:
        if point.dividend:
            dividends_per_share += point.dividend
            payout = compound_shares * point.dividend
            compound_shares += payout / point.close

    market_value = initial_shares * current_price
    dividends_value = initial_shares * dividends_per_share
    final_value_simple = market_value + dividends_value
    final_value_compound = compound_shares * current_price

    return BacktestResult(
        initial_date=start.date,
        initial_price=start.close,
        observations=len(window),
        final_value_simple=final_value_simple,
        appreciation_value=market_value - invested_amount,
        dividends_value=dividends_value,
        market_value=market_value,
        initial_plus_dividends=invested_amount + dividends_value,
        final_value_compound=final_value_compound,
        extra_return=final_value_compound - final_value_simple,
    )


# ---------------------------------------------------------------------------
# Forward projections
# ---------------------------------------------------------------------------


def projection_value(
    annual_rate: Decimal | None,
    start_amount: Decimal,
    monthly_contribution: Decimal,
    months: int,
) -> Decimal:
    """Future value of a lump sum plus a monthly annuity.

    Falls back to linear accumulation when *annual_rate* is zero or None.
    """
    rate = monthly_rate(annual_rate)
    if not rate:
        return start_amount + monthly_contribution * months

    growth = (_ONE + rate) ** months
    lump_sum = start_amount * growth
    annuity = monthly_contribution * ((growth - _ONE) / rate)
    return lump_sum + annuity


def projection_time(
    annual_rate: Decimal | None,
    start_amount: Decimal,
    monthly_contribution: Decimal,
    target_amount: Decimal,
) -> Decimal:
    """Months needed for the projection to reach *target_amount*.

    Solves ``projection_value(...) == target`` in closed form:
    ``n = ln((T*r + c) / (S*r + c)) / ln(1 + r)``.

    Returns:
        ``0`` if the target is already met, :data:`UNREACHABLE` when the
        parameters can never converge, otherwise a fractional month count.
    """
    if target_amount <= start_amount:
        return _ZERO

    rate = monthly_rate(annual_rate)
    if not rate:
        if monthly_contribution <= 0:
            return UNREACHABLE
        return (target_amount - start_amount) / monthly_contribution

    if rate <= -_ONE:
        return UNREACHABLE

    numerator = target_amount * rate + monthly_contribution
    denominator = start_amount * rate + monthly_contribution
    if denominator == 0:
        return UNREACHABLE
    ratio = numerator / denominator
    if ratio <= 0:
        return UNREACHABLE

    months = ratio.ln() / (_ONE + rate).ln()
    if months < 0:
        return UNREACHABLE
    return months


def projection_income(
    annual_rate: Decimal | None,
    start_amount: Decimal,
    monthly_contribution: Decimal,
    months: int,
) -> Decimal:
    """Monthly income the projected capital would yield after *months*.

    The income is the capital times the monthly-equivalent rate, i.e. what
    could be withdrawn each month without eroding the principal. Zero when
    the rate is not positive.
    """
    rate = monthly_rate(annual_rate)
    if rate <= 0:
        return _ZERO
    return projection_value(annual_rate, start_amount, monthly_contribution, months) * rate


def projection_time_for_income(
    annual_rate: Decimal | None,
    start_amount: Decimal,
    monthly_contribution: Decimal,
    target_income: Decimal,
) -> Decimal:
    """Months until the capital yields *target_income* per month.

    Returns:
        :data:`UNREACHABLE` when the rate is not positive, otherwise the
        :func:`projection_time` to the capital that yields the target.
    """
    rate = monthly_rate(annual_rate)
    if rate <= 0:
        return UNREACHABLE
    target_capital = target_income / rate
    return projection_time(annual_rate, start_amount, monthly_contribution, target_capital)


# ---------------------------------------------------------------------------
# Benchmark rates
# ---------------------------------------------------------------------------


def compounded_rate_factor(rates: Iterable[RatePoint]) -> Decimal:
    """Growth factor of one unit compounding every daily rate (1.12 == +12%)."""
    factor = _ONE
    for point in rates:
        factor *= _ONE + point.rate
    return factor


def simple_rate_factor(rates: Iterable[RatePoint]) -> Decimal:
    """Growth factor when daily rates are summed instead of compounded."""
    return _ONE + sum((point.rate for point in rates), _ZERO)


def daily_rate(annual_rate: Decimal, share: Decimal = _ONE) -> Decimal:
    """Business-day rate equivalent to *annual_rate*, scaled by *share*.

    ``share`` expresses products quoted as a percentage of the benchmark,
    e.g. ``Decimal("1.1")`` for 110% of the CDI.
    """
    base = _ONE + annual_rate
    if base <= 0:
        return -share
    return (base ** (_ONE / BUSINESS_DAYS_PER_YEAR) - _ONE) * share


def estimate_future_rate(
    annual_rate: Decimal,
    days: int = int(BUSINESS_DAYS_PER_YEAR),
    *,
    share: Decimal = _ONE,
) -> list[Decimal]:
    """Cumulative growth factors for the next *days* business days.

    Element ``i`` is the factor after ``i + 1`` days at the daily equivalent
    of *annual_rate*, so 252 days at the full rate end at ``1 + annual_rate``.

    Raises:
        ValueError: If *days* is negative.
    """
    if days < 0:
        msg = f"days must be >= 0, got {days}"
        raise ValueError(msg)

    step = _ONE + daily_rate(annual_rate, share)
    factors: list[Decimal] = []
    factor = _ONE
    for _ in range(days):
        factor *= step
        factors.append(factor)
    return factors


def compare_to_benchmark(
    symbol: str,
    lookback: LookbackPeriod,
    result: BacktestResult,
    invested_amount: Decimal,
    rates: RateSeries,
) -> BenchmarkComparison:
    """Put a backtest next to *invested_amount* earning the benchmark rate.

    Only rates published on or after the backtest's start date count. The
    instrument leg uses the dividend-reinvested value.

    Raises:
        ValueError: If *invested_amount* is not positive.
    """
    if invested_amount <= 0:
        msg = f"invested amount must be positive, got {invested_amount}"
        raise ValueError(msg)

    window = [point for point in rates.points if point.date >= result.initial_date]
    factor = compounded_rate_factor(window)
    instrument_return = result.final_value_compound / invested_amount - _ONE
    benchmark_return = factor - _ONE

    return BenchmarkComparison(
        symbol=symbol,
        benchmark=rates.name,
        lookback=lookback,
        start_date=result.initial_date,
        invested=invested_amount,
        instrument_value=result.final_value_compound,
        instrument_return=instrument_return,
        benchmark_days=len(window),
        benchmark_factor=factor,
        benchmark_simple_factor=simple_rate_factor(window),
        benchmark_value=invested_amount * factor,
        benchmark_return=benchmark_return,
        excess_return=instrument_return - benchmark_return,
    )
