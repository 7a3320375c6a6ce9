"""Injected time source.

Ingestion decisions (freshness cutoffs, `last_modified`) are computed from a
Clock rather than from the wall clock so that tests can pin "now".
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


UTC = timezone.utc


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware UTC datetime."""


class SystemClock:
    """Real UTC time."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)


class FixedClock:
    """Clock pinned to a single instant (tests, replays)."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None or instant.utcoffset() is None:
            raise ValueError("FixedClock requires a timezone-aware datetime.")
        self._instant = instant.astimezone(UTC)

    def now(self) -> datetime:
        return self._instant

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta
