"""Rate-limit cooldown policy for the single lookup lane."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from core.config import BackoffConfig
from core.models import utc_now

LOGGER = logging.getLogger(__name__)


class BackoffController:
    """Token-less circuit breaker driven by rate-limit signals.

    There is exactly one caller (the queue worker), so a single process-wide
    ``cooldown_until`` is enough to serialize the lane.
    """

    def __init__(self, config: BackoffConfig, clock: Callable[[], datetime] = utc_now) -> None:
        self._config = config
        self._clock = clock
        self.cooldown_until: Optional[datetime] = None
        self.consecutive = 0

    def compute_delay(self, retry_after: Optional[float] = None) -> float:
        """Return the pause in seconds for the next rate-limit event."""

        # A zero or negative hint falls back to the exponential schedule.
        if retry_after is not None and retry_after > 0:
            delay = float(retry_after)
        else:
            delay = self._config.base_seconds * (2 ** self.consecutive)
        return min(delay, self._config.max_seconds)

    def record_rate_limit(self, retry_after: Optional[float] = None) -> float:
        delay = self.compute_delay(retry_after)
        self.cooldown_until = self._clock() + timedelta(seconds=delay)
        self.consecutive += 1
        LOGGER.warning(
            "Rate limited (%s in a row); pausing lookups for %.1fs",
            self.consecutive,
            delay,
        )
        return delay

    def record_outcome(self) -> None:
        """Any non-rate-limited outcome resets the consecutive counter."""

        self.consecutive = 0

    def remaining(self) -> float:
        """Seconds left in the current cooldown (0 when the lane is open)."""

        if self.cooldown_until is None:
            return 0.0
        left = (self.cooldown_until - self._clock()).total_seconds()
        return max(left, 0.0)
