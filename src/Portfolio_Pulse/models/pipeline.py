"""Pipeline models: analysis jobs, leaderboard entries, and the joint result.

AnalysisJob is the only mutable model in the package -- it is owned by the
job queue, and every transition goes through the queue's mark_* methods.
Everything handed to callers (JobView, RunSnapshot) is a frozen copy.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from Portfolio_Pulse.models.enums import JobState, RunStatus
from Portfolio_Pulse.models.simulation import MultiPeriodReturn

# --- Retry boundaries ---
MAX_RETRIES: int = 2


class AnalysisJob(BaseModel):
    """One analysis job per instrument in a run."""

    model_config = ConfigDict(validate_assignment=True)

    symbol: str
    name: str = ""
    state: JobState = JobState.PENDING
    retry_count: int = Field(default=0, ge=0, le=MAX_RETRIES)
    last_attempt_at: float | None = None
    result_text: str | None = None
    error_message: str | None = None

    @property
    def is_terminal_failure(self) -> bool:
        """True once the job has failed and used up every retry."""
        return self.state == JobState.FAILED and self.retry_count >= MAX_RETRIES

    @property
    def is_settled(self) -> bool:
        """True for completed jobs and terminally failed jobs."""
        return self.state == JobState.COMPLETED or self.is_terminal_failure


class JobView(BaseModel):
    """Read-only view of a job for snapshots.

    ``state`` is ``cooldown`` for a failed job that is still waiting out its
    retry window.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    state: JobState
    retry_count: int
    terminal: bool
    result_text: str | None = None
    error_message: str | None = None


class NarrativeReport(BaseModel):
    """A completed job's narrative, as sent to the joint analysis call."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    content: str


class RankEntry(BaseModel):
    """A leaderboard row from the consolidated multi-period ranking."""

    model_config = ConfigDict(frozen=True)

    rank: int
    symbol: str
    name: str = ""
    score: int = Field(ge=0)
    returns: MultiPeriodReturn


class JointRankingItem(BaseModel):
    """One row of the machine-readable ranking embedded in the joint analysis."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    symbol: str
    signal: str
    score: float

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, value: str) -> str:
        """Symbols are compared uppercase."""
        return value.strip().upper()


class NarrativeOnly(BaseModel):
    """Joint analysis that carried no usable machine-readable ranking."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["narrative"] = "narrative"
    narrative: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ranking(self) -> list[JointRankingItem]:
        """Always empty; present so both variants read the same way."""
        return []


class RankedNarrative(BaseModel):
    """Joint analysis whose sentinel block parsed into a ranking."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ranked"] = "ranked"
    narrative: str
    ranking: list[JointRankingItem]


JointResult = Annotated[NarrativeOnly | RankedNarrative, Field(discriminator="kind")]


class RunSnapshot(BaseModel):
    """Point-in-time view of a batch run for the presentation layer."""

    model_config = ConfigDict(frozen=True)

    generation: int
    status: RunStatus
    jobs: list[JobView]
    cooldown_seconds_remaining: int
    leaderboard: list[RankEntry]
    joint: JointResult | None = None
    error_message: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completed_count(self) -> int:
        """Number of jobs that finished successfully."""
        return sum(1 for job in self.jobs if job.state == JobState.COMPLETED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def progress_pct(self) -> float:
        """Share of completed jobs, 0-100."""
        if not self.jobs:
            return 0.0
        return self.completed_count / len(self.jobs) * 100.0
