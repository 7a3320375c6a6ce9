"""Bounded exponential backoff for upstream fetches.

Defaults: 3 attempts total, delays 1s, 2s, 4s... capped at 8s. For rate limits
the upstream's Retry-After wins when it is longer than the computed delay,
however long it is, unless `max_retry_after` is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fdingest.core.errors import FailureKind, FetchFailure


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: timedelta = timedelta(seconds=1)
    multiplier: float = 2.0
    max_delay: timedelta = timedelta(seconds=8)
    # Opt-in: surface advertised Retry-After values above this instead of sleeping on them.
    max_retry_after: Optional[timedelta] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < timedelta(0) or self.max_delay < timedelta(0):
            raise ValueError("delays must be non-negative")
        if self.max_retry_after is not None and self.max_retry_after < timedelta(0):
            raise ValueError("max_retry_after must be non-negative")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

    def backoff(self, attempt: int) -> timedelta:
        """Computed delay after the given (1-based) failed attempt."""
        seconds = self.initial_delay.total_seconds() * (self.multiplier ** (attempt - 1))
        return min(timedelta(seconds=seconds), self.max_delay)

    def delay_for(self, attempt: int, failure: FetchFailure) -> timedelta:
        delay = self.backoff(attempt)
        if failure.kind is FailureKind.RATE_LIMITED and failure.retry_after is not None:
            delay = max(delay, failure.retry_after)
        return delay

    def should_retry(self, failure: FetchFailure, attempt: int) -> bool:
        if not failure.retryable or attempt >= self.max_attempts:
            return False
        if (
            self.max_retry_after is not None
            and failure.retry_after is not None
            and failure.retry_after > self.max_retry_after
        ):
            return False
        return True
