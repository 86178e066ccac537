"""Process-wide cooldown between external analysis calls."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CooldownTimer:
    """Countdown restarted to a fixed duration after every attempt.

    The timer reads an injected monotonic clock instead of ticking on its own,
    so ``remaining()`` is always derived from the last ``restart()``.
    """

    def __init__(self, duration: float, clock: Clock = time.monotonic) -> None:
        if duration < 0:
            msg = f"cooldown duration must be >= 0, got {duration}"
            raise ValueError(msg)
        self._duration = duration
        self._clock = clock
        self._deadline: float | None = None

    @property
    def duration(self) -> float:
        return self._duration

    def restart(self) -> None:
        """Start a fresh countdown from now."""
        self._deadline = self._clock() + self._duration
        logger.debug("Cooldown restarted: %.1fs", self._duration)

    def reset(self) -> None:
        """Clear the countdown so the next call is not delayed."""
        self._deadline = None

    def remaining(self) -> float:
        """Seconds left before the next call is allowed, never negative."""
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - self._clock())

    def seconds_remaining(self) -> int:
        """Whole seconds left, rounded up for display."""
        return math.ceil(self.remaining())

    @property
    def is_active(self) -> bool:
        return self.remaining() > 0.0
