"""SQLAlchemy declarative base and shared mixins.

- UUID primary keys, generated by the application at insert time, so that an
  `INSERT ... ON CONFLICT DO NOTHING RETURNING id` yields an id only for the
  row that was actually created.
- Timezone-aware timestamps; values written by the application must be UTC.
"""

from __future__ import annotations

import uuid

from sqlalchemy import DateTime, Uuid
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.functions import FunctionElement


class utcnow(FunctionElement):
    """Database-side UTC timestamp for server defaults.

    On SQLite the value is written with microseconds, in the same text form
    SQLAlchemy binds datetimes with, so range comparisons against bound
    parameters are exact.
    """

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(utcnow)
def _utcnow_default(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(utcnow, "postgresql")
def _utcnow_postgresql(element, compiler, **kw):
    return "now()"


@compiles(utcnow, "sqlite")
def _utcnow_sqlite(element, compiler, **kw):
    return "strftime('%Y-%m-%d %H:%M:%f000', 'now')"


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class UUIDPrimaryKeyMixin:
    """UUID primary key mixin (application-generated)."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
