"""Competition ingest service.

Flow for a single competition code:
1. Freshness check against the raw store -> skip if fetched within the window.
2. Upstream fetch (retries are the client's job, never repeated here).
3. Canonical serialization of the document.
4. Insert-if-absent into the raw store.

At most one remote call per key per freshness window under sequential use.
Concurrent ingests for the same key may both fetch (the freshness check is
advisory) but only one row is ever written: the store's unique constraint
decides, and the losing writer observes SKIPPED_CONFLICT.
"""

from __future__ import annotations

import calendar
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional, Protocol

from fdingest.core.client import FetchOutcome, FetchResult
from fdingest.core.competition import Competition
from fdingest.core.errors import FetchFailure, IngestFailed
from matchlens.core.clock import Clock, UTC


logger = logging.getLogger("fdingest.ingest")

SOURCE = "football-data.org"
COMPETITION_ENDPOINT = "/v4/competitions/{code}"


class IngestResult(str, Enum):
    INSERTED = "inserted"
    SKIPPED_FRESH = "skipped_fresh"
    SKIPPED_ABSENT = "skipped_absent"
    SKIPPED_CONFLICT = "skipped_conflict"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class IngestOutput:
    result: IngestResult
    record_id: Optional[uuid.UUID] = None
    failure: Optional[FetchFailure] = None
    attempts: int = 0

    @property
    def skipped(self) -> bool:
        return self.result in (
            IngestResult.SKIPPED_FRESH,
            IngestResult.SKIPPED_ABSENT,
            IngestResult.SKIPPED_CONFLICT,
        )

    def raise_for_failure(self) -> Optional[uuid.UUID]:
        """Return the new record id (None when skipped); raise IngestFailed on failure."""
        if self.failure is not None:
            raise IngestFailed(self.failure)
        return self.record_id


class CompetitionFetcher(Protocol):
    def fetch_competition(self, code: str, *, cancel: Optional[threading.Event] = None) -> FetchResult: ...


class RawStore(Protocol):
    def exists(self, source: str, endpoint: str, external_key: str, since_inclusive: datetime) -> bool: ...

    def insert_if_absent(
        self,
        source: str,
        endpoint: str,
        external_key: str,
        last_modified: datetime,
        payload: dict[str, Any],
    ) -> Optional[uuid.UUID]: ...


def minus_one_month(moment: datetime) -> datetime:
    """Same wall time one calendar month earlier, day clamped to month length."""
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def serialize_competition(competition: Competition) -> dict[str, Any]:
    """Canonical JSON document for storage. Raises on anything not round-trippable."""
    document = competition.to_document()
    # Round-trip to prove the payload is plain JSON before it reaches the store.
    return json.loads(json.dumps(document, allow_nan=False))


class CompetitionIngestService:
    def __init__(
        self,
        store: RawStore,
        client: CompetitionFetcher,
        clock: Clock,
        *,
        freshness: Optional[timedelta] = None,
    ) -> None:
        self._store = store
        self._client = client
        self._clock = clock
        # None means one calendar month.
        self._freshness = freshness

    def freshness_cutoff(self, now: datetime) -> datetime:
        if self._freshness is None:
            return minus_one_month(now)
        return now - self._freshness

    def ingest(self, code: str, *, cancel: Optional[threading.Event] = None) -> IngestOutput:
        now = self._clock.now().astimezone(UTC)
        cutoff = self.freshness_cutoff(now)

        if self._store.exists(SOURCE, COMPETITION_ENDPOINT, code, cutoff):
            return self._done(code, IngestOutput(result=IngestResult.SKIPPED_FRESH))

        fetched = self._client.fetch_competition(code, cancel=cancel)
        if fetched.outcome is FetchOutcome.ABSENT:
            return self._done(code, IngestOutput(result=IngestResult.SKIPPED_ABSENT, attempts=fetched.attempts))
        if fetched.outcome is FetchOutcome.FAILED:
            return self._done(
                code,
                IngestOutput(result=IngestResult.FAILED, failure=fetched.failure, attempts=fetched.attempts),
            )

        try:
            payload = serialize_competition(fetched.resource)
        except (TypeError, ValueError) as e:
            logger.error("Failed to serialize competition %s to JSON: %s", code, e)
            failure = FetchFailure.serialization_error(str(e)).with_attempts(fetched.attempts)
            return self._done(
                code,
                IngestOutput(result=IngestResult.FAILED, failure=failure, attempts=fetched.attempts),
            )

        record_id = self._store.insert_if_absent(SOURCE, COMPETITION_ENDPOINT, code, now, payload)
        if record_id is None:
            return self._done(code, IngestOutput(result=IngestResult.SKIPPED_CONFLICT, attempts=fetched.attempts))
        return self._done(
            code,
            IngestOutput(result=IngestResult.INSERTED, record_id=record_id, attempts=fetched.attempts),
        )

    def _done(self, code: str, output: IngestOutput) -> IngestOutput:
        event: dict[str, Any] = {
            "event": "competition_ingest",
            "source": SOURCE,
            "code": code,
            "result": output.result.value,
            "attempts": output.attempts,
        }
        if output.record_id is not None:
            event["record_id"] = str(output.record_id)
        if output.failure is not None:
            event["failure"] = output.failure.kind.value
            if output.failure.status is not None:
                event["status"] = output.failure.status
        level = logging.WARNING if output.failure is not None else logging.INFO
        logger.log(level, json.dumps(event))
        return output
