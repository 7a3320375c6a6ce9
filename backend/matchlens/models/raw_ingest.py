"""RawIngestRecord model.

One row per (source, endpoint, external_key): the payload fetched from an
upstream provider, stored verbatim as a JSON document. Rows are append-only;
retention and cleanup happen outside this subsystem.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, validates

from matchlens.core.base import Base, UUIDPrimaryKeyMixin, utcnow


UTC = timezone.utc

PayloadType = JSON().with_variant(JSONB(), "postgresql")


class RawIngestRecord(UUIDPrimaryKeyMixin, Base):
    """Raw upstream payload keyed by (source, endpoint, external_key).

    `last_modified` is supplied by the caller (when the fetch was performed);
    `fetched_at` is assigned by the database clock and drives freshness checks.
    """

    __tablename__ = "fd_raw_ingest"

    source: Mapped[str] = mapped_column(Text, nullable=False)
    endpoint: Mapped[str] = mapped_column(Text, nullable=False)
    external_key: Mapped[str] = mapped_column(Text, nullable=False)

    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=utcnow(),
    )

    payload: Mapped[dict[str, Any]] = mapped_column(PayloadType, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "source",
            "endpoint",
            "external_key",
            name="ux_fd_raw_ingest_source_endpoint_key",
        ),
        Index(
            "ix_fd_raw_ingest_key_fetched_at",
            "source",
            "endpoint",
            "external_key",
            "fetched_at",
        ),
    )

    @validates("last_modified")
    def _validate_utc(self, key: str, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError(f"{key} must be timezone-aware (UTC).")
        if value.utcoffset() != timedelta(0):
            raise ValueError(f"{key} must be UTC (offset 0).")
        return value.astimezone(UTC)
