"""Process-wide GitHub rate-limit tracking.

Every GitHub response carries ``x-ratelimit-remaining`` and
``x-ratelimit-reset`` headers. The tracker keeps the latest values so
callers can skip requests that are certain to be rejected.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

DEFAULT_REMAINING = 60


@dataclass(frozen=True)
class RateLimitState:
    """Snapshot of the remote rate-limit budget."""

    remaining: int = DEFAULT_REMAINING
    reset_at: datetime | None = None

    def is_exhausted(self, now: datetime) -> bool:
        return self.remaining <= 0 and self.reset_at is not None and now < self.reset_at

    def wait_minutes(self, now: datetime) -> int:
        if self.reset_at is None:
            return 0
        seconds = (self.reset_at - now).total_seconds()
        return max(1, math.ceil(seconds / 60))


class RateLimitTracker:
    """Holds the shared :class:`RateLimitState`.

    The state is replaced as a whole value under a lock, so concurrent
    readers never observe a half-updated record. Losing an update to a
    concurrent response is acceptable.
    """

    def __init__(
        self,
        initial: RateLimitState | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._state = initial or RateLimitState()
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        return self._clock()

    def read(self) -> RateLimitState:
        with self._lock:
            return self._state

    def replace(self, state: RateLimitState) -> None:
        with self._lock:
            self._state = state

    def update(self, headers: Mapping[str, str]) -> RateLimitState:
        """Overwrite the state from response headers.

        Responses without a remaining header leave the state untouched.
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        raw_remaining = lowered.get("x-ratelimit-remaining")
        if raw_remaining is None:
            return self.read()

        try:
            remaining = max(0, int(raw_remaining))
        except (TypeError, ValueError):
            logger.debug("Ignoring unparseable rate-limit header", extra={"value": raw_remaining})
            return self.read()

        reset_at: datetime | None = None
        raw_reset = lowered.get("x-ratelimit-reset")
        if raw_reset:
            try:
                reset_at = datetime.fromtimestamp(int(raw_reset), tz=UTC)
            except (TypeError, ValueError, OverflowError):
                reset_at = None

        state = RateLimitState(remaining=remaining, reset_at=reset_at)
        self.replace(state)
        return state

    def reset(self) -> None:
        self.replace(RateLimitState())


_tracker = RateLimitTracker()


def get_rate_limit_tracker() -> RateLimitTracker:
    """Return the tracker shared by every GitHub client in this process."""
    return _tracker
