"""Tests for custom exception hierarchy.

Covers:
- Inheritance: every external-call failure is a DataFetchError
- Attributes: ticker, source, http_status accessible
- Pipeline misuse errors sit outside the DataFetchError tree
"""

import pytest

from Portfolio_Pulse.utils.exceptions import (
    ConfigurationError,
    DataFetchError,
    DataSourceUnavailableError,
    InsufficientDataError,
    InvalidResponseError,
    JobTransitionError,
    RateLimitExceededError,
    TickerNotFoundError,
    UpstreamError,
)


class TestDataFetchErrorBase:
    """Tests for the base DataFetchError exception."""

    def test_attributes_accessible(self) -> None:
        exc = DataFetchError(
            "Data fetch failed",
            ticker="AAPL",
            source="yfinance",
            http_status=500,
        )
        assert exc.ticker == "AAPL"
        assert exc.source == "yfinance"
        assert exc.http_status == 500
        assert str(exc) == "Data fetch failed"

    def test_http_status_defaults_to_none(self) -> None:
        exc = DataFetchError("Data fetch failed", ticker="MSFT", source="ollama")
        assert exc.http_status is None


class TestHierarchy:
    """Subclasses can be caught by their own type and by their parents."""

    @pytest.mark.parametrize(
        "exc_type",
        [
            TickerNotFoundError,
            DataSourceUnavailableError,
            InsufficientDataError,
            UpstreamError,
            RateLimitExceededError,
            InvalidResponseError,
        ],
    )
    def test_caught_as_data_fetch_error(self, exc_type: type[DataFetchError]) -> None:
        with pytest.raises(DataFetchError) as exc_info:
            raise exc_type("failed", ticker="AAA", source="test")
        assert exc_info.value.ticker == "AAA"

    @pytest.mark.parametrize("exc_type", [RateLimitExceededError, InvalidResponseError])
    def test_provider_errors_are_upstream_errors(self, exc_type: type[UpstreamError]) -> None:
        assert issubclass(exc_type, UpstreamError)

    def test_rate_limit_status(self) -> None:
        exc = RateLimitExceededError("slow down", ticker="*", source="ollama", http_status=429)
        assert exc.http_status == 429


class TestPipelineErrors:
    """Tests for ConfigurationError and JobTransitionError."""

    def test_configuration_error_is_value_error(self) -> None:
        assert issubclass(ConfigurationError, ValueError)
        assert not issubclass(ConfigurationError, DataFetchError)

    def test_job_transition_error_carries_symbol(self) -> None:
        exc = JobTransitionError("Cannot start AAA", symbol="AAA")
        assert isinstance(exc, RuntimeError)
        assert exc.symbol == "AAA"
        assert str(exc) == "Cannot start AAA"
