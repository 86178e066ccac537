"""Consolidated multi-period leaderboard for a batch run.

Each completed instrument contributes a 1M/6M/1Y return triple. Per period the
instruments are sorted by return (descending, stable) and the top 12 earn
points from :data:`POINTS_TABLE`. Points are summed across periods, the totals
sorted descending (stable again), and the top 12 returned with 1-based ranks.
Equal returns and equal totals keep insertion order.
"""

import datetime
import logging
from collections.abc import Mapping
from decimal import Decimal

from Portfolio_Pulse.analysis.simulation import backtest
from Portfolio_Pulse.models.enums import LookbackPeriod
from Portfolio_Pulse.models.market_data import PriceSeries
from Portfolio_Pulse.models.pipeline import RankEntry
from Portfolio_Pulse.models.simulation import MultiPeriodReturn

logger = logging.getLogger(__name__)

# --- Scoring table ---
POINTS_TABLE: tuple[int, ...] = (15, 12, 10, 9, 8, 7, 6, 5, 4, 3, 2, 1)
LEADERBOARD_SIZE: int = 12

# --- Return windows ---
DEFAULT_NOTIONAL: Decimal = Decimal("1000")
MIN_OBSERVATIONS: int = 2

_PERIOD_FIELDS: tuple[tuple[LookbackPeriod, str], ...] = (
    (LookbackPeriod.ONE_MONTH, "one_month"),
    (LookbackPeriod.SIX_MONTHS, "six_month"),
    (LookbackPeriod.ONE_YEAR, "one_year"),
)


def compute_multi_period_return(
    series: PriceSeries,
    *,
    notional: Decimal = DEFAULT_NOTIONAL,
    as_of: datetime.date | None = None,
) -> MultiPeriodReturn:
    """Dividend-reinvested return over 1M, 6M and 1Y for one instrument.

    The position is valued at the series' last close. A window with no
    backtest, or fewer than two observations, contributes zero.
    """
    current_price = series.last_close
    if current_price is None:
        return MultiPeriodReturn()

    values: dict[str, Decimal] = {}
    for period, field_name in _PERIOD_FIELDS:
        result = backtest(series, current_price, notional, period, as_of=as_of)
        if result is None or result.observations < MIN_OBSERVATIONS:
            logger.debug("No %s return for %s", period.value, series.symbol)
            values[field_name] = Decimal("0")
            continue
        values[field_name] = (result.final_value_compound - notional) / notional

    return MultiPeriodReturn(**values)


def score_leaderboard(
    returns: Mapping[str, MultiPeriodReturn],
    names: Mapping[str, str] | None = None,
) -> list[RankEntry]:
    """Rank instruments by points earned across the three return windows.

    Args:
        returns: Symbol to return triple, in insertion order. The order is the
            tie-break for equal returns and equal totals.
        names: Optional display names keyed by symbol.

    Returns:
        At most :data:`LEADERBOARD_SIZE` entries sorted by total points
        descending, with ranks starting at 1.
    """
    if not returns:
        return []

    names = names or {}
    symbols = list(returns)
    totals: dict[str, int] = dict.fromkeys(symbols, 0)

    for _, field_name in _PERIOD_FIELDS:
        ordered = sorted(symbols, key=lambda s: getattr(returns[s], field_name), reverse=True)
        for symbol, points in zip(ordered, POINTS_TABLE):
            totals[symbol] += points

    ranked = sorted(symbols, key=lambda s: totals[s], reverse=True)[:LEADERBOARD_SIZE]

    leaderboard = [
        RankEntry(
            rank=rank,
            symbol=symbol,
            name=names.get(symbol, ""),
            score=totals[symbol],
            returns=returns[symbol],
        )
        for rank, symbol in enumerate(ranked, start=1)
    ]
    logger.info(
        "Leaderboard computed: %d instruments, %d ranked",
        len(symbols),
        len(leaderboard),
    )
    return leaderboard
