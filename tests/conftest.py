"""Shared test fixtures for the Portfolio Pulse test suite."""

from __future__ import annotations

import pytest
from fakes import FakeAnalyst, FakeClock, FakePriceSource, make_daily_series

from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.models import Instrument, PriceSeries


@pytest.fixture()
def fake_clock() -> FakeClock:
    """A clock parked at t=1000s."""
    return FakeClock()


@pytest.fixture()
def pipeline_settings() -> PipelineSettings:
    """Default settings: 30s cooldown, retry wait equal to the cooldown."""
    return PipelineSettings(cooldown_seconds=30.0, poll_interval_seconds=1.0)


@pytest.fixture()
def price_source() -> FakePriceSource:
    return FakePriceSource()


@pytest.fixture()
def analyst() -> FakeAnalyst:
    return FakeAnalyst()


@pytest.fixture()
def sample_instruments() -> list[Instrument]:
    """Two instruments, in run order."""
    return [Instrument(symbol="AAA", name="Alpha Corp"), Instrument(symbol="BBB", name="Beta SA")]


@pytest.fixture()
def daily_series() -> PriceSeries:
    """400 calendar days of linearly rising closes ending on AS_OF."""
    return make_daily_series("AAA")
