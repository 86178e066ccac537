"""Shared fixtures for web route tests.

Provides a test FastAPI app wired to in-memory price, rate and analysis fakes,
and a TestClient, so route tests never hit yfinance, the BCB API or Ollama.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterator

import pytest
from fakes import FakeAnalyst, FakePriceSource, FakeRateSource, make_daily_series
from fastapi import FastAPI
from fastapi.testclient import TestClient

from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.web.app import create_app


@pytest.fixture()
def web_settings() -> PipelineSettings:
    """No cooldown and a short poll so background runs finish quickly."""
    return PipelineSettings(cooldown_seconds=0.0, poll_interval_seconds=0.01)


@pytest.fixture()
def web_price_source() -> FakePriceSource:
    """Rising AAA and flat FLAT histories, both ending today."""
    today = datetime.date.today()
    return FakePriceSource(
        {
            "AAA": make_daily_series("AAA", end=today),
            "BBB": make_daily_series("BBB", end=today),
            "FLAT": make_daily_series("FLAT", daily_step="0", end=today),
        }
    )


@pytest.fixture()
def web_analyst() -> FakeAnalyst:
    return FakeAnalyst()


@pytest.fixture()
def web_rate_source() -> FakeRateSource:
    return FakeRateSource()


@pytest.fixture()
def app(
    web_settings: PipelineSettings,
    web_price_source: FakePriceSource,
    web_analyst: FakeAnalyst,
    web_rate_source: FakeRateSource,
) -> FastAPI:
    """Create a test app around the fakes."""
    return create_app(
        web_settings,
        price_source=web_price_source,
        analyst=web_analyst,
        rate_source=web_rate_source,
    )


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client with the lifespan running, so background drivers keep ticking."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

