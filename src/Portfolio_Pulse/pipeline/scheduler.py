"""Single-flight, cooldown-gated batch analysis run.

:class:`BatchAnalysisRun` drains a :class:`JobQueue` one instrument at a time.
Each :meth:`BatchAnalysisRun.tick` makes at most one external call (price
history, then the narrative analysis) and is a no-op while a call is in
flight or the cooldown is running. Once every job is settled, the leaderboard
is scored and a single joint analysis call is made over the completed reports.

Every run has a generation number. A response that arrives after
:meth:`BatchAnalysisRun.start_run` or :meth:`BatchAnalysisRun.reset` bumped the
generation is logged and dropped.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Protocol

from Portfolio_Pulse.analysis.ranking import compute_multi_period_return, score_leaderboard
from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.models.enums import AnalysisKind, RunStatus
from Portfolio_Pulse.models.market_data import Instrument, PriceSeries
from Portfolio_Pulse.models.pipeline import (
    JointResult,
    NarrativeReport,
    RankEntry,
    RunSnapshot,
)
from Portfolio_Pulse.models.simulation import MultiPeriodReturn
from Portfolio_Pulse.pipeline.cooldown import Clock, CooldownTimer
from Portfolio_Pulse.pipeline.job_queue import JobQueue
from Portfolio_Pulse.pipeline.joint import JointAnalysisAdapter
from Portfolio_Pulse.utils.exceptions import DataFetchError

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------


class PriceSeriesSource(Protocol):
    async def fetch_price_series(self, symbol: str, period: str) -> PriceSeries: ...


class NarrativeAnalyst(Protocol):
    async def request_narrative_analysis(
        self,
        symbol: str,
        kind: AnalysisKind,
        series: PriceSeries,
    ) -> str: ...

    async def request_joint_analysis(self, reports: Sequence[NarrativeReport]) -> str: ...


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


class BatchAnalysisRun:
    """Owns the queue, cooldown, in-flight flag and aggregation results of a run.

    Parameters
    ----------
    price_source:
        Where price history comes from.
    analyst:
        Narrative and joint analysis provider.
    settings:
        Cooldown, retry wait, history period and analysis kind.
    clock:
        Monotonic seconds; tests inject a fake.
    sleep:
        Awaitable sleep used by :meth:`drive`.
    today:
        Reference date for the return windows.
    """

    def __init__(
        self,
        price_source: PriceSeriesSource,
        analyst: NarrativeAnalyst,
        settings: PipelineSettings | None = None,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
        today: Callable[[], datetime.date] = datetime.date.today,
    ) -> None:
        self._price_source = price_source
        self._analyst = analyst
        self._joint_adapter = JointAnalysisAdapter(analyst)
        self._settings = settings or PipelineSettings()
        self._clock = clock
        self._sleep = sleep
        self._today = today

        self._generation = 0
        self._status = RunStatus.IDLE
        self._queue = JobQueue(self._settings.effective_retry_wait, clock)
        self._cooldown = CooldownTimer(self._settings.cooldown_seconds, clock)
        self._in_flight = False
        self._returns: dict[str, MultiPeriodReturn] = {}
        self._leaderboard: list[RankEntry] = []
        self._joint: JointResult | None = None
        self._error_message: str | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def is_active(self) -> bool:
        """True while the run still has work or aggregation to do."""
        return self._status in (RunStatus.RUNNING, RunStatus.AGGREGATING)

    @property
    def returns(self) -> dict[str, MultiPeriodReturn]:
        """Per-symbol return triples of completed jobs, in insertion order."""
        return dict(self._returns)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_run(self, instruments: Iterable[Instrument]) -> int:
        """Discard any previous run and start a new one.

        Returns:
            The new run's generation.

        Raises:
            ConfigurationError: If *instruments* is empty or repeats a symbol.
                The current run is left untouched in that case.
        """
        queue = JobQueue(self._settings.effective_retry_wait, self._clock)
        queue.initialize(instruments)

        self._clear(queue)
        self._status = RunStatus.RUNNING
        logger.info("Run %d started with %d instruments", self._generation, len(queue))
        return self._generation

    def reset(self) -> None:
        """Abandon the current run and return to idle."""
        self._clear(JobQueue(self._settings.effective_retry_wait, self._clock))
        logger.info("Run reset to idle (generation %d)", self._generation)

    def _clear(self, queue: JobQueue) -> None:
        self._generation += 1
        self._status = RunStatus.IDLE
        self._queue = queue
        self._cooldown.reset()
        self._in_flight = False
        self._returns = {}
        self._leaderboard = []
        self._joint = None
        self._error_message = None

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation == self._generation:
            return False
        logger.warning(
            "Discarding %s from run %d (current run is %d)",
            what,
            generation,
            self._generation,
        )
        return True

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def tick(self) -> None:
        """Advance the run by at most one external call."""
        if self._in_flight or self._status != RunStatus.RUNNING or self._cooldown.is_active:
            return

        job = self._queue.next_eligible()
        if job is None:
            if self._queue.all_settled():
                await self._aggregate()
            return

        symbol = job.symbol
        generation = self._generation
        self._in_flight = True
        self._queue.mark_processing(symbol)

        try:
            series = await self._price_source.fetch_price_series(
                symbol, self._settings.history_period
            )
            if self._is_stale(generation, f"price history for {symbol}"):
                return
            text = await self._analyst.request_narrative_analysis(
                symbol, self._settings.analysis_kind, series
            )
        except (DataFetchError, TimeoutError) as exc:
            if self._is_stale(generation, f"failure for {symbol}"):
                return
            self._queue.mark_failed(symbol, str(exc) or type(exc).__name__)
            self._cooldown.restart()
        except Exception as exc:  # noqa: BLE001
            if self._is_stale(generation, f"failure for {symbol}"):
                return
            logger.exception("Unexpected error analyzing %s", symbol)
            self._queue.mark_failed(symbol, f"Unexpected error: {exc}")
            self._cooldown.restart()
        else:
            if self._is_stale(generation, f"result for {symbol}"):
                return
            self._queue.mark_completed(symbol, text)
            self._returns[symbol] = compute_multi_period_return(
                series,
                notional=self._settings.notional,
                as_of=self._today(),
            )
            self._cooldown.restart()
        finally:
            if generation == self._generation:
                self._in_flight = False

    async def _aggregate(self) -> None:
        completed = self._queue.completed()
        returns = {job.symbol: self._returns[job.symbol] for job in completed}
        names = {job.symbol: job.name for job in completed}
        self._leaderboard = score_leaderboard(returns, names)

        if not completed:
            self._status = RunStatus.COMPLETED
            logger.warning("Run %d finished with no completed jobs", self._generation)
            return

        reports = [
            NarrativeReport(symbol=job.symbol, content=job.result_text or "") for job in completed
        ]
        generation = self._generation
        self._status = RunStatus.AGGREGATING
        self._in_flight = True
        logger.info("Run %d aggregating %d reports", generation, len(reports))

        try:
            joint = await self._joint_adapter.run(reports)
        except (DataFetchError, TimeoutError) as exc:
            if self._is_stale(generation, "joint analysis failure"):
                return
            self._fail(str(exc) or type(exc).__name__)
        except Exception as exc:  # noqa: BLE001
            if self._is_stale(generation, "joint analysis failure"):
                return
            logger.exception("Unexpected error in joint analysis")
            self._fail(f"Unexpected error: {exc}")
        else:
            if self._is_stale(generation, "joint analysis result"):
                return
            self._joint = joint
            self._status = RunStatus.COMPLETED
            logger.info("Run %d completed", generation)
        finally:
            if generation == self._generation:
                self._in_flight = False

    def _fail(self, message: str) -> None:
        self._status = RunStatus.FAILED
        self._error_message = message
        logger.error("Run %d failed during joint analysis: %s", self._generation, message)

    async def drive(self, poll_interval: float | None = None) -> RunSnapshot:
        """Tick the current run until it ends or is replaced.

        Between ticks it sleeps until the cooldown expires, or for
        *poll_interval* seconds when no cooldown is running.

        Returns:
            The snapshot taken when the loop stopped.
        """
        interval = poll_interval or self._settings.poll_interval_seconds
        generation = self._generation

        while generation == self._generation and self._status == RunStatus.RUNNING:
            await self.tick()
            if generation != self._generation or self._status != RunStatus.RUNNING:
                break
            remaining = self._cooldown.remaining()
            await self._sleep(remaining if remaining > 0 else interval)

        return self.snapshot()

    # ------------------------------------------------------------------
    # Read model
    # ------------------------------------------------------------------

    def snapshot(self) -> RunSnapshot:
        """Frozen view of the run for the presentation layer."""
        return RunSnapshot(
            generation=self._generation,
            status=self._status,
            jobs=self._queue.views(),
            cooldown_seconds_remaining=self._cooldown.seconds_remaining(),
            leaderboard=list(self._leaderboard),
            joint=self._joint,
            error_message=self._error_message,
        )
