from __future__ import annotations

from dataclasses import dataclass

import httpx

from readme_generator.core.errors import ReadmeGeneratorError


@dataclass(frozen=True)
class RetryDecision:
    should_retry: bool
    backoff_seconds: float
    reason: str


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry for transient failures.

    ``max_retries`` counts retries after the first attempt, so the
    default allows three attempts in total.
    """

    max_retries: int = 2
    backoff_seconds: float = 1.0

    def decide(self, *, attempt: int, exc: Exception) -> RetryDecision:
        if not is_retryable_exception(exc):
            return RetryDecision(False, 0.0, "non_transient")
        if attempt > self.max_retries:
            return RetryDecision(False, 0.0, "retries_exhausted")
        return RetryDecision(True, self.backoff_seconds, "transient")


def is_retryable_exception(exc: Exception) -> bool:
    if isinstance(exc, ReadmeGeneratorError):
        return exc.retryable

    retryable: tuple[type[BaseException], ...] = (
        TimeoutError,
        ConnectionError,
        httpx.TransportError,
    )
    return isinstance(exc, retryable)
