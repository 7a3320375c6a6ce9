"""Raw ingest store (fd_raw_ingest).

Durable, append-only storage of upstream payloads keyed by
(source, endpoint, external_key). No business logic.

Uniqueness is enforced by the database, not by this class: `insert_if_absent`
is a single `INSERT ... ON CONFLICT DO NOTHING RETURNING id`, so two callers
racing on the same key cannot both create a row and neither gets an error.
The store never commits; the caller owns the transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from matchlens.models.raw_ingest import RawIngestRecord


UTC = timezone.utc

_UNIQUE_KEY = ("source", "endpoint", "external_key")


def _require_utc(name: str, value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC).")
    if value.utcoffset() != timedelta(0):
        return value.astimezone(UTC)
    return value


class RawIngestStore:
    def __init__(self, session: Session) -> None:
        self._session = session

    def _insert(self):
        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(RawIngestRecord)
        if dialect == "sqlite":
            return sqlite_insert(RawIngestRecord)
        raise RuntimeError(f"Unsupported database dialect for insert-if-absent: {dialect}")

    def exists(self, source: str, endpoint: str, external_key: str, since_inclusive: datetime) -> bool:
        """True iff a record for the key exists with fetched_at >= since_inclusive."""
        since = _require_utc("since_inclusive", since_inclusive)
        stmt = (
            select(RawIngestRecord.id)
            .where(
                RawIngestRecord.source == source,
                RawIngestRecord.endpoint == endpoint,
                RawIngestRecord.external_key == external_key,
                RawIngestRecord.fetched_at >= since,
            )
            .limit(1)
        )
        return self._session.execute(stmt).scalar_one_or_none() is not None

    def insert_if_absent(
        self,
        source: str,
        endpoint: str,
        external_key: str,
        last_modified: datetime,
        payload: dict[str, Any],
    ) -> Optional[uuid.UUID]:
        """Insert a new record; return its id, or None if the key already exists."""
        stmt = (
            self._insert()
            .values(
                id=uuid.uuid4(),
                source=source,
                endpoint=endpoint,
                external_key=external_key,
                last_modified=_require_utc("last_modified", last_modified),
                payload=payload,
            )
            .on_conflict_do_nothing(index_elements=list(_UNIQUE_KEY))
            .returning(RawIngestRecord.id)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def get(self, source: str, endpoint: str, external_key: str) -> Optional[RawIngestRecord]:
        stmt = select(RawIngestRecord).where(
            RawIngestRecord.source == source,
            RawIngestRecord.endpoint == endpoint,
            RawIngestRecord.external_key == external_key,
        )
        return self._session.execute(stmt).scalar_one_or_none()
