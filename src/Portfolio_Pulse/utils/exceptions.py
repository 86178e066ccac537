"""Custom exception hierarchy for the Portfolio Pulse application.

External-call failures inherit from DataFetchError, which carries the ticker
and the source that failed. Pipeline misuse is reported separately through
ConfigurationError and JobTransitionError.
"""


class DataFetchError(Exception):
    """Base exception for all external-call failures.

    Attributes:
        ticker: The ticker symbol involved in the failure.
        source: The external source that failed (e.g., "yfinance", "ollama").
        http_status: The HTTP status code, if the failure was HTTP-related.
    """

    def __init__(
        self,
        message: str,
        *,
        ticker: str,
        source: str,
        http_status: int | None = None,
    ) -> None:
        self.ticker = ticker
        self.source = source
        self.http_status = http_status
        super().__init__(message)


class TickerNotFoundError(DataFetchError):
    """Raised when a ticker symbol is unknown or its price series is empty."""


class DataSourceUnavailableError(DataFetchError):
    """Raised when the market data source is unreachable or returning errors."""


class InsufficientDataError(DataFetchError):
    """Raised when available data is too sparse for the requested operation."""


class UpstreamError(DataFetchError):
    """Raised when the analysis provider returns a non-success response."""


class RateLimitExceededError(UpstreamError):
    """Raised when the analysis provider rejects a call for rate limiting."""


class InvalidResponseError(UpstreamError):
    """Raised when the analysis provider answers with empty or malformed content."""


class ConfigurationError(ValueError):
    """Raised when a run or the application settings are misconfigured."""


class JobTransitionError(RuntimeError):
    """Raised when a job queue state transition is not allowed.

    Attributes:
        symbol: The job the transition was attempted on.
    """

    def __init__(self, message: str, *, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(message)
