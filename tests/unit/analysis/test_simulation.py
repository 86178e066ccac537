"""Tests for the backtest and projection math.

Covers CAGR, the monthly-rate conversion, both backtest terminal values,
closest-entry selection, every projection solver including the unreachable
cases, and the benchmark rate factors.
"""

from __future__ import annotations

import datetime
from decimal import Decimal

import pytest
from fakes import AS_OF, make_series

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
from Portfolio_Pulse.models import (
    BacktestResult,
    LookbackPeriod,
    PriceSeries,
    RatePoint,
    RateSeries,
)

TOLERANCE = Decimal("1e-12")


def _close(a: Decimal, b: Decimal, tolerance: Decimal = TOLERANCE) -> bool:
    return abs(a - b) <= tolerance


def _day(offset: int) -> datetime.date:
    """AS_OF shifted by *offset* days (negative = past)."""
    return AS_OF + datetime.timedelta(days=offset)


# ---------------------------------------------------------------------------
# CAGR and monthly rate
# ---------------------------------------------------------------------------


class TestCagr:
    """Tests for cagr()."""

    def test_one_year_ten_percent(self) -> None:
        """100 -> 110 over exactly 365 days is a 10% CAGR."""
        series = make_series("AAA", [(_day(-365), "100"), (_day(0), "110")])
        result = cagr(series)
        assert result is not None
        assert _close(result, Decimal("0.1"))

    def test_two_years_annualized(self) -> None:
        """100 -> 121 over 730 days annualizes to 10%."""
        series = make_series("AAA", [(_day(-730), "100"), (_day(0), "121")])
        result = cagr(series)
        assert result is not None
        assert _close(result, Decimal("0.1"))

    def test_single_point_is_undefined(self) -> None:
        series = make_series("AAA", [(_day(0), "100")])
        assert cagr(series) is None

    def test_empty_is_undefined(self) -> None:
        assert cagr(PriceSeries(symbol="AAA", points=[])) is None

    def test_non_positive_start_is_undefined(self) -> None:
        series = make_series("AAA", [(_day(-365), "0"), (_day(0), "10")])
        assert cagr(series) is None

    def test_total_loss(self) -> None:
        """A last close of zero is a -100% growth rate."""
        series = make_series("AAA", [(_day(-365), "10"), (_day(0), "0")])
        assert cagr(series) == Decimal("-1")


class TestMonthlyRate:
    """Tests for monthly_rate()."""

    @pytest.mark.parametrize("annual", [None, Decimal("0")])
    def test_zero_or_missing_rate(self, annual: Decimal | None) -> None:
        assert monthly_rate(annual) == Decimal("0")

    def test_compounds_back_to_annual(self) -> None:
        """Twelve months at the monthly rate reproduce the annual rate."""
        rate = monthly_rate(Decimal("0.12"))
        assert _close((1 + rate) ** 12, Decimal("1.12"))

    def test_total_loss_maps_to_minus_one(self) -> None:
        assert monthly_rate(Decimal("-1")) == Decimal("-1")
        assert monthly_rate(Decimal("-1.5")) == Decimal("-1")


# ---------------------------------------------------------------------------
# Backtest
# ---------------------------------------------------------------------------


class TestBacktest:
    """Tests for backtest()."""

    def test_empty_series_returns_none(self) -> None:
        empty = PriceSeries(symbol="AAA", points=[])
        assert backtest(empty, Decimal("10"), Decimal("1000"), LookbackPeriod.ONE_YEAR) is None

    def test_history_after_horizon_returns_none(self) -> None:
        """No entry on or before the 1Y horizon means no backtest."""
        series = make_series("AAA", [(_day(-100), "10"), (_day(0), "11")])
        result = backtest(
            series, Decimal("11"), Decimal("1000"), LookbackPeriod.ONE_YEAR, as_of=AS_OF
        )
        assert result is None

    def test_flat_price_returns_invested_amount(self) -> None:
        """Constant price and no dividends leave the position unchanged."""
        closes = [(_day(-offset), "50") for offset in range(40, -1, -1)]
        series = make_series("AAA", closes)

        result = backtest(
            series, Decimal("50"), Decimal("1000"), LookbackPeriod.ONE_MONTH, as_of=AS_OF
        )

        assert result is not None
        assert result.final_value_simple == Decimal("1000")
        assert result.final_value_compound == Decimal("1000")
        assert result.appreciation_value == Decimal("0")
        assert result.dividends_value == Decimal("0")
        assert result.extra_return == Decimal("0")

    def test_simple_and_compound_dividends(self) -> None:
        """Dividends accumulate as cash in the simple value and buy shares in the compound one.

        100 invested at 10 buys 10 shares. A 1.00 dividend paid when the close
        is 5 is worth 10 in cash, or 2 extra shares when reinvested.
        """
        series = make_series(
            "AAA",
            [(_day(-30), "10"), (_day(-15), "5"), (_day(0), "10")],
            dividends={_day(-15): "1"},
        )

        result = backtest(
            series, Decimal("10"), Decimal("100"), LookbackPeriod.ONE_MONTH, as_of=AS_OF
        )

        assert result is not None
        assert result.initial_date == _day(-30)
        assert result.initial_price == Decimal("10")
        assert result.market_value == Decimal("100")
        assert result.dividends_value == Decimal("10")
        assert result.final_value_simple == Decimal("110")
        assert result.initial_plus_dividends == Decimal("110")
        assert result.final_value_compound == Decimal("120")
        assert result.extra_return == Decimal("10")
        assert result.observations == 3

    def test_dividends_before_start_are_ignored(self) -> None:
        series = make_series(
            "AAA",
            [(_day(-60), "10"), (_day(-30), "10"), (_day(0), "10")],
            dividends={_day(-60): "5"},
        )

        result = backtest(
            series, Decimal("10"), Decimal("100"), LookbackPeriod.ONE_MONTH, as_of=AS_OF
        )

        assert result is not None
        assert result.dividends_value == Decimal("0")
        assert result.final_value_compound == Decimal("100")
        assert result.observations == 2

    def test_closest_entry_wins(self) -> None:
        """The entry nearest the horizon is the purchase date."""
        horizon = _day(-LOOKBACK_DAYS[LookbackPeriod.ONE_MONTH])
        series = make_series(
            "AAA",
            [
                (horizon - datetime.timedelta(days=5), "8"),
                (horizon + datetime.timedelta(days=1), "9"),
                (_day(0), "10"),
            ],
        )

        result = backtest(
            series, Decimal("10"), Decimal("90"), LookbackPeriod.ONE_MONTH, as_of=AS_OF
        )

        assert result is not None
        assert result.initial_date == horizon + datetime.timedelta(days=1)
        assert result.market_value == Decimal("100")

    def test_tie_goes_to_earlier_entry(self) -> None:
        horizon = _day(-LOOKBACK_DAYS[LookbackPeriod.ONE_MONTH])
        before = horizon - datetime.timedelta(days=2)
        after = horizon + datetime.timedelta(days=2)
        series = make_series("AAA", [(before, "8"), (after, "9"), (_day(0), "10")])

        result = backtest(
            series, Decimal("10"), Decimal("80"), LookbackPeriod.ONE_MONTH, as_of=AS_OF
        )

        assert result is not None
        assert result.initial_date == before

    def test_appreciation_value(self) -> None:
        series = make_series("AAA", [(_day(-365), "20"), (_day(0), "30")])

        result = backtest(
            series, Decimal("30"), Decimal("1000"), LookbackPeriod.ONE_YEAR, as_of=AS_OF
        )

        assert result is not None
        assert result.market_value == Decimal("1500")
        assert result.appreciation_value == Decimal("500")

    def test_lookback_day_counts(self) -> None:
        assert LOOKBACK_DAYS == {
            LookbackPeriod.ONE_MONTH: 30,
            LookbackPeriod.SIX_MONTHS: 180,
            LookbackPeriod.ONE_YEAR: 365,
            LookbackPeriod.FIVE_YEARS: 1825,
        }


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


def _iterate(rate: Decimal, start: Decimal, contribution: Decimal, months: int) -> Decimal:
    value = start
    for _ in range(months):
        value = value * (1 + rate) + contribution
    return value


class TestProjectionValue:
    """Tests for projection_value()."""

    @pytest.mark.parametrize("annual", [None, Decimal("0")])
    def test_linear_without_growth(self, annual: Decimal | None) -> None:
        assert projection_value(annual, Decimal("1000"), Decimal("100"), 12) == Decimal("2200")

    def test_matches_month_by_month_compounding(self) -> None:
        annual = Decimal("0.12")
        expected = _iterate(monthly_rate(annual), Decimal("1000"), Decimal("100"), 36)
        result = projection_value(annual, Decimal("1000"), Decimal("100"), 36)
        assert _close(result, expected, Decimal("1e-9"))

    def test_zero_months_is_start(self) -> None:
        assert projection_value(Decimal("0.1"), Decimal("500"), Decimal("50"), 0) == Decimal("500")


class TestProjectionTime:
    """Tests for projection_time()."""

    def test_target_already_met(self) -> None:
        assert projection_time(Decimal("0.1"), Decimal("1000"), Decimal("0"), Decimal("900")) == 0
        assert projection_time(Decimal("0.1"), Decimal("1000"), Decimal("0"), Decimal("1000")) == 0

    def test_zero_rate_no_contribution_is_unreachable(self) -> None:
        result = projection_time(None, Decimal("1000"), Decimal("0"), Decimal("2000"))
        assert result == UNREACHABLE

    def test_zero_rate_linear(self) -> None:
        result = projection_time(Decimal("0"), Decimal("1000"), Decimal("100"), Decimal("2200"))
        assert result == Decimal("12")

    def test_positive_rate_brackets_target(self) -> None:
        """The solved month count lands between the months on either side of the target."""
        annual = Decimal("0.12")
        start, contribution, target = Decimal("1000"), Decimal("100"), Decimal("10000")

        months = projection_time(annual, start, contribution, target)

        assert months != UNREACHABLE
        whole = int(months)
        assert projection_value(annual, start, contribution, whole) < target
        assert projection_value(annual, start, contribution, whole + 1) >= target

    def test_lump_sum_doubling(self) -> None:
        """At 12% a year a lump sum doubles in ln(2)/ln(1.12) years."""
        months = projection_time(Decimal("0.12"), Decimal("1000"), Decimal("0"), Decimal("2000"))
        expected_years = Decimal(2).ln() / Decimal("1.12").ln()
        assert _close(months / 12, expected_years, Decimal("1e-9"))

    def test_shrinking_capital_is_unreachable(self) -> None:
        """A negative rate without contributions never grows the capital."""
        result = projection_time(Decimal("-0.5"), Decimal("1000"), Decimal("0"), Decimal("2000"))
        assert result == UNREACHABLE

    def test_total_loss_is_unreachable(self) -> None:
        result = projection_time(Decimal("-1"), Decimal("1000"), Decimal("100"), Decimal("2000"))
        assert result == UNREACHABLE


class TestIncomeProjections:
    """Tests for projection_income() and projection_time_for_income()."""

    def test_income_is_capital_times_monthly_rate(self) -> None:
        annual = Decimal("0.12")
        capital = projection_value(annual, Decimal("1000"), Decimal("100"), 24)
        income = projection_income(annual, Decimal("1000"), Decimal("100"), 24)
        assert income == capital * monthly_rate(annual)

    @pytest.mark.parametrize("annual", [None, Decimal("0"), Decimal("-0.2")])
    def test_no_income_without_positive_rate(self, annual: Decimal | None) -> None:
        assert projection_income(annual, Decimal("1000"), Decimal("100"), 24) == Decimal("0")

    @pytest.mark.parametrize("annual", [None, Decimal("0"), Decimal("-0.2")])
    def test_income_goal_unreachable_without_positive_rate(self, annual: Decimal | None) -> None:
        result = projection_time_for_income(annual, Decimal("1000"), Decimal("100"), Decimal("50"))
        assert result == UNREACHABLE

    def test_income_goal_matches_capital_goal(self) -> None:
        annual = Decimal("0.12")
        target_income = Decimal("100")
        capital_needed = target_income / monthly_rate(annual)

        months = projection_time_for_income(annual, Decimal("1000"), Decimal("200"), target_income)

        assert months == projection_time(annual, Decimal("1000"), Decimal("200"), capital_needed)


# ---------------------------------------------------------------------------
# Benchmark rates
# ---------------------------------------------------------------------------


def _rates(*entries: tuple[int, str]) -> RateSeries:
    return RateSeries(
        name="CDI",
        points=[RatePoint(date=_day(offset), rate=Decimal(rate)) for offset, rate in entries],
    )


class TestRateFactors:
    """Tests for compounded_rate_factor() and simple_rate_factor()."""

    def test_compounded(self) -> None:
        rates = _rates((-2, "0.01"), (-1, "0.02"))
        assert compounded_rate_factor(rates.points) == Decimal("1.0302")

    def test_simple(self) -> None:
        rates = _rates((-2, "0.01"), (-1, "0.02"))
        assert simple_rate_factor(rates.points) == Decimal("1.03")

    def test_no_rates_is_unit_factor(self) -> None:
        assert compounded_rate_factor([]) == Decimal("1")
        assert simple_rate_factor([]) == Decimal("1")

    def test_compounding_beats_summing_for_positive_rates(self) -> None:
        rates = _rates(*((-offset, "0.0004") for offset in range(252, 0, -1)))
        assert compounded_rate_factor(rates.points) > simple_rate_factor(rates.points)


class TestEstimateFutureRate:
    """Tests for daily_rate() and estimate_future_rate()."""

    def test_full_year_reaches_annual_rate(self) -> None:
        """252 business days at the daily equivalent compound back to the annual rate."""
        factors = estimate_future_rate(Decimal("0.1"))

        assert len(factors) == int(BUSINESS_DAYS_PER_YEAR)
        assert _close(factors[-1], Decimal("1.1"))

    def test_factors_are_cumulative(self) -> None:
        factors = estimate_future_rate(Decimal("0.1"), 3)
        step = 1 + daily_rate(Decimal("0.1"))

        assert factors[0] == step
        assert _close(factors[2], step**3)

    def test_share_scales_daily_rate(self) -> None:
        """110% of the benchmark earns 1.1 times the daily rate."""
        base = daily_rate(Decimal("0.1"))
        assert daily_rate(Decimal("0.1"), Decimal("1.1")) == base * Decimal("1.1")

        factors = estimate_future_rate(Decimal("0.1"), 1, share=Decimal("1.1"))
        assert factors == [1 + base * Decimal("1.1")]

    def test_zero_share_stays_flat(self) -> None:
        assert estimate_future_rate(Decimal("0.1"), 5, share=Decimal("0")) == [Decimal("1")] * 5

    def test_total_loss_rate(self) -> None:
        """An annual rate of -100% wipes the position out after one day."""
        assert estimate_future_rate(Decimal("-1"), 2) == [Decimal("0"), Decimal("0")]

    def test_zero_days(self) -> None:
        assert estimate_future_rate(Decimal("0.1"), 0) == []

    def test_negative_days_rejected(self) -> None:
        with pytest.raises(ValueError, match="days must be >= 0"):
            estimate_future_rate(Decimal("0.1"), -1)


class TestCompareToBenchmark:
    """Tests for compare_to_benchmark()."""

    @pytest.fixture()
    def flat_result(self) -> BacktestResult:
        closes = [(_day(-offset), "50") for offset in range(40, -1, -1)]
        result = backtest(
            make_series("AAA", closes),
            Decimal("50"),
            Decimal("1000"),
            LookbackPeriod.ONE_MONTH,
            as_of=AS_OF,
        )
        assert result is not None
        return result

    def test_flat_instrument_against_rates(self, flat_result: BacktestResult) -> None:
        """Rates before the backtest start are ignored."""
        rates = _rates((-31, "0.5"), (-30, "0.01"), (-1, "0.01"))

        comparison = compare_to_benchmark(
            "AAA", LookbackPeriod.ONE_MONTH, flat_result, Decimal("1000"), rates
        )

        assert comparison.start_date == _day(-30)
        assert comparison.benchmark == "CDI"
        assert comparison.benchmark_days == 2  # noqa: PLR2004
        assert comparison.benchmark_factor == Decimal("1.0201")
        assert comparison.benchmark_simple_factor == Decimal("1.02")
        assert comparison.benchmark_value == Decimal("1020.1000")
        assert comparison.instrument_value == Decimal("1000")
        assert comparison.instrument_return == Decimal("0")
        assert comparison.excess_return == Decimal("-0.0201")

    def test_no_rates_in_window(self, flat_result: BacktestResult) -> None:
        comparison = compare_to_benchmark(
            "AAA", LookbackPeriod.ONE_MONTH, flat_result, Decimal("1000"), _rates((-31, "0.5"))
        )

        assert comparison.benchmark_days == 0
        assert comparison.benchmark_return == Decimal("0")

    def test_non_positive_amount_rejected(self, flat_result: BacktestResult) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            compare_to_benchmark(
                "AAA", LookbackPeriod.ONE_MONTH, flat_result, Decimal("0"), _rates()
            )
