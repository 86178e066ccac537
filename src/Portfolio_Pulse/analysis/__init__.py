"""Return math and leaderboard scoring.

Re-exports all public functions so consumers can import directly:
    from Portfolio_Pulse.analysis import backtest, score_leaderboard
"""

from Portfolio_Pulse.analysis.ranking import (
    LEADERBOARD_SIZE,
    POINTS_TABLE,
    compute_multi_period_return,
    score_leaderboard,
)
from Portfolio_Pulse.analysis.simulation import (
    BUSINESS_DAYS_PER_YEAR,
    LOOKBACK_DAYS,
    UNREACHABLE,
    backtest,
    cagr,
    compare_to_benchmark,
    compounded_rate_factor,
    daily_rate,
    estimate_future_rate,
    monthly_rate,
    projection_income,
    projection_time,
    projection_time_for_income,
    projection_value,
    simple_rate_factor,
)

__all__ = [
    # Simulation
    "LOOKBACK_DAYS",
    "UNREACHABLE",
    "backtest",
    "cagr",
    "monthly_rate",
    "projection_income",
    "projection_time",
    "projection_time_for_income",
    "projection_value",
    # Benchmark rates
    "BUSINESS_DAYS_PER_YEAR",
    "compare_to_benchmark",
    "compounded_rate_factor",
    "daily_rate",
    "estimate_future_rate",
    "simple_rate_factor",
    # Ranking
    "LEADERBOARD_SIZE",
    "POINTS_TABLE",
    "compute_multi_period_return",
    "score_leaderboard",
]
