"""Insertion-ordered job queue with retry bookkeeping.

The queue is the single owner of :class:`AnalysisJob` state. Transitions:

    pending    -> processing
    failed     -> processing   (retry_count < MAX_RETRIES, retry wait elapsed)
    processing -> completed
    processing -> failed       (retry_count += 1)

A failed job whose ``retry_count`` has reached :data:`MAX_RETRIES` is terminal.
Any other transition raises :class:`JobTransitionError`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from Portfolio_Pulse.models.enums import JobState
from Portfolio_Pulse.models.market_data import Instrument
from Portfolio_Pulse.models.pipeline import MAX_RETRIES, AnalysisJob, JobView
from Portfolio_Pulse.pipeline.cooldown import Clock
from Portfolio_Pulse.utils.exceptions import ConfigurationError, JobTransitionError

logger = logging.getLogger(__name__)


class JobQueue:
    """One :class:`AnalysisJob` per instrument, kept in insertion order."""

    def __init__(self, retry_wait: float, clock: Clock = time.monotonic) -> None:
        self._retry_wait = retry_wait
        self._clock = clock
        self._jobs: dict[str, AnalysisJob] = {}

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self, instruments: Iterable[Instrument]) -> None:
        """Replace the queue contents with one pending job per instrument.

        Raises:
            ConfigurationError: If *instruments* is empty or repeats a symbol.
        """
        jobs: dict[str, AnalysisJob] = {}
        for instrument in instruments:
            if instrument.symbol in jobs:
                msg = f"Duplicate symbol in run: {instrument.symbol}"
                raise ConfigurationError(msg)
            jobs[instrument.symbol] = AnalysisJob(symbol=instrument.symbol, name=instrument.name)

        if not jobs:
            msg = "A run needs at least one instrument"
            raise ConfigurationError(msg)

        self._jobs = jobs
        logger.info("Job queue initialized with %d jobs", len(jobs))

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def _is_retryable(self, job: AnalysisJob) -> bool:
        return job.state == JobState.FAILED and job.retry_count < MAX_RETRIES

    def _retry_wait_elapsed(self, job: AnalysisJob) -> bool:
        if job.last_attempt_at is None:
            return True
        return self._clock() - job.last_attempt_at >= self._retry_wait

    def _is_eligible(self, job: AnalysisJob) -> bool:
        if job.state == JobState.PENDING:
            return True
        return self._is_retryable(job) and self._retry_wait_elapsed(job)

    def next_eligible(self) -> AnalysisJob | None:
        """First job, in insertion order, that may be processed now."""
        for job in self._jobs.values():
            if self._is_eligible(job):
                return job.model_copy()
        return None

    def all_settled(self) -> bool:
        """True when every job is completed or terminally failed."""
        return bool(self._jobs) and all(job.is_settled for job in self._jobs.values())

    def has_processing(self) -> bool:
        return any(job.state == JobState.PROCESSING for job in self._jobs.values())

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _require(self, symbol: str) -> AnalysisJob:
        job = self._jobs.get(symbol)
        if job is None:
            msg = f"Unknown job: {symbol}"
            raise JobTransitionError(msg, symbol=symbol)
        return job

    def mark_processing(self, symbol: str) -> None:
        job = self._require(symbol)
        if job.state != JobState.PENDING and not self._is_retryable(job):
            msg = f"Cannot start {symbol} from state {job.state.value}"
            raise JobTransitionError(msg, symbol=symbol)
        if self.has_processing():
            msg = f"Cannot start {symbol}: another job is already processing"
            raise JobTransitionError(msg, symbol=symbol)

        job.state = JobState.PROCESSING
        job.error_message = None
        logger.info("Job %s processing (attempt %d)", symbol, job.retry_count + 1)

    def mark_completed(self, symbol: str, text: str) -> None:
        job = self._require(symbol)
        if job.state != JobState.PROCESSING:
            msg = f"Cannot complete {symbol} from state {job.state.value}"
            raise JobTransitionError(msg, symbol=symbol)

        job.state = JobState.COMPLETED
        job.result_text = text
        job.last_attempt_at = self._clock()
        logger.info("Job %s completed", symbol)

    def mark_failed(self, symbol: str, message: str) -> None:
        job = self._require(symbol)
        if job.state != JobState.PROCESSING:
            msg = f"Cannot fail {symbol} from state {job.state.value}"
            raise JobTransitionError(msg, symbol=symbol)

        job.state = JobState.FAILED
        job.retry_count += 1
        job.error_message = message
        job.last_attempt_at = self._clock()
        if job.is_terminal_failure:
            logger.warning(
                "Job %s failed permanently after %d attempts: %s",
                symbol,
                job.retry_count,
                message,
            )
        else:
            logger.warning(
                "Job %s failed (attempt %d/%d), retry in %.1fs: %s",
                symbol,
                job.retry_count,
                MAX_RETRIES,
                self._retry_wait,
                message,
            )

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    def get(self, symbol: str) -> AnalysisJob | None:
        job = self._jobs.get(symbol)
        return None if job is None else job.model_copy()

    def jobs(self) -> list[AnalysisJob]:
        """Copies of every job, in insertion order."""
        return [job.model_copy() for job in self._jobs.values()]

    def completed(self) -> list[AnalysisJob]:
        return [job.model_copy() for job in self._jobs.values() if job.state == JobState.COMPLETED]

    def views(self) -> list[JobView]:
        """Display views, reporting waiting retryable jobs as ``cooldown``."""
        views: list[JobView] = []
        for job in self._jobs.values():
            state = job.state
            if self._is_retryable(job) and not self._retry_wait_elapsed(job):
                state = JobState.COOLDOWN
            views.append(
                JobView(
                    symbol=job.symbol,
                    name=job.name,
                    state=state,
                    retry_count=job.retry_count,
                    terminal=job.is_terminal_failure,
                    result_text=job.result_text,
                    error_message=job.error_message,
                )
            )
        return views

    def __len__(self) -> int:
        return len(self._jobs)
