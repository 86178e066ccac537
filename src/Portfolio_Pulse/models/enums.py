"""StrEnum types for the batch analysis domain.

All enums use Python 3.12+ StrEnum. Values are lowercase strings, except
lookback periods which keep the market-data shorthand ("1M", "1Y").
Use enum members in business logic, never raw strings.
"""

from enum import StrEnum


class JobState(StrEnum):
    """Lifecycle state of a single analysis job.

    ``COOLDOWN`` is never stored on a job; snapshots report it for a failed
    job that may still be retried but whose own wait window has not elapsed.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COOLDOWN = "cooldown"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(StrEnum):
    """Overall status of a batch analysis run."""

    IDLE = "idle"
    RUNNING = "running"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    FAILED = "failed"


class LookbackPeriod(StrEnum):
    """Backtest lookback windows."""

    ONE_MONTH = "1M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    FIVE_YEARS = "5Y"


class AnalysisKind(StrEnum):
    """Flavour of narrative report requested from the analysis provider."""

    COMPLETE = "complete"
    TECHNICAL = "technical"
    FUNDAMENTAL = "fundamental"
    DIVIDENDS = "dividends"
    SENTIMENT = "sentiment"


class ProjectionMode(StrEnum):
    """What a forward projection solves for."""

    VALUE = "value"
    GOAL = "goal"
    INCOME_VALUE = "income_value"
    INCOME_GOAL = "income_goal"
