"""Simulation models: backtest outcomes, benchmark comparisons and multi-period returns."""

import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer

from Portfolio_Pulse.models.enums import LookbackPeriod


class BacktestResult(BaseModel):
    """What an investment made at ``initial_date`` would be worth today.

    ``final_value_simple`` keeps dividends as cash; ``final_value_compound``
    reinvests every dividend at that day's close.
    """

    model_config = ConfigDict(frozen=True)

    initial_date: datetime.date
    initial_price: Decimal
    observations: int
    final_value_simple: Decimal
    appreciation_value: Decimal
    dividends_value: Decimal
    market_value: Decimal
    initial_plus_dividends: Decimal
    final_value_compound: Decimal
    extra_return: Decimal

    @field_serializer(
        "initial_price",
        "final_value_simple",
        "appreciation_value",
        "dividends_value",
        "market_value",
        "initial_plus_dividends",
        "final_value_compound",
        "extra_return",
    )
    def serialize_decimal(self, value: Decimal) -> str:
        """Serialize Decimal fields as strings to preserve precision."""
        return str(value)


class MultiPeriodReturn(BaseModel):
    """Compound return over the 1-month, 6-month and 1-year windows.

    Values are fractions (0.05 == 5%). A window without enough history is 0.
    """

    model_config = ConfigDict(frozen=True)

    one_month: Decimal = Decimal("0")
    six_month: Decimal = Decimal("0")
    one_year: Decimal = Decimal("0")

    @field_serializer("one_month", "six_month", "one_year")
    def serialize_decimal(self, value: Decimal) -> str:
        """Serialize Decimal fields as strings to preserve precision."""
        return str(value)


class BenchmarkComparison(BaseModel):
    """A backtested position next to the same amount earning a benchmark rate.

    Both legs start at ``start_date`` with ``invested``. The instrument leg
    reinvests dividends; the benchmark leg compounds every published daily
    rate from ``start_date`` on. Returns are fractions.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    benchmark: str
    lookback: LookbackPeriod
    start_date: datetime.date
    invested: Decimal
    instrument_value: Decimal
    instrument_return: Decimal
    benchmark_days: int
    benchmark_factor: Decimal
    benchmark_simple_factor: Decimal
    benchmark_value: Decimal
    benchmark_return: Decimal
    excess_return: Decimal

    @field_serializer(
        "invested",
        "instrument_value",
        "instrument_return",
        "benchmark_factor",
        "benchmark_simple_factor",
        "benchmark_value",
        "benchmark_return",
        "excess_return",
    )
    def serialize_decimal(self, value: Decimal) -> str:
        """Serialize Decimal fields as strings to preserve precision."""
        return str(value)
