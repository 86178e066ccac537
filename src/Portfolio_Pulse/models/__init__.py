"""Pydantic v2 models, enums, and type definitions.

Re-exports all public models so consumers can import directly:
    from Portfolio_Pulse.models import Instrument, PriceSeries, RankEntry
"""

from Portfolio_Pulse.models.enums import (
    AnalysisKind,
    JobState,
    LookbackPeriod,
    ProjectionMode,
    RunStatus,
)
from Portfolio_Pulse.models.market_data import (
    Instrument,
    PricePoint,
    PriceSeries,
    RatePoint,
    RateSeries,
)
from Portfolio_Pulse.models.pipeline import (
    MAX_RETRIES,
    AnalysisJob,
    JobView,
    JointRankingItem,
    JointResult,
    NarrativeOnly,
    NarrativeReport,
    RankedNarrative,
    RankEntry,
    RunSnapshot,
)
from Portfolio_Pulse.models.simulation import (
    BacktestResult,
    BenchmarkComparison,
    MultiPeriodReturn,
)

__all__ = [
    # Enums
    "AnalysisKind",
    "JobState",
    "LookbackPeriod",
    "ProjectionMode",
    "RunStatus",
    # Market data
    "Instrument",
    "PricePoint",
    "PriceSeries",
    "RatePoint",
    "RateSeries",
    # Simulation
    "BacktestResult",
    "BenchmarkComparison",
    "MultiPeriodReturn",
    # Pipeline
    "MAX_RETRIES",
    "AnalysisJob",
    "JobView",
    "JointRankingItem",
    "JointResult",
    "NarrativeOnly",
    "NarrativeReport",
    "RankEntry",
    "RankedNarrative",
    "RunSnapshot",
]
