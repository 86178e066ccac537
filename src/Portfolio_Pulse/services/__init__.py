"""External data services."""

from Portfolio_Pulse.services.benchmark_rates import BcbRateService, RateSeriesSource
from Portfolio_Pulse.services.market_data import MarketDataService

__all__ = [
    "BcbRateService",
    "MarketDataService",
    "RateSeriesSource",
]
