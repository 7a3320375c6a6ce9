"""Raw ingest table for football-data.org payloads."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from matchlens.core.base import utcnow


# Revision identifiers, used by Alembic.
revision = "0001_fd_raw_ingest"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "fd_raw_ingest",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("source", sa.Text(), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("external_key", sa.Text(), nullable=False),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=utcnow(),
        ),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        # Insert-if-absent relies on this constraint (ON CONFLICT target).
        sa.UniqueConstraint(
            "source",
            "endpoint",
            "external_key",
            name="ux_fd_raw_ingest_source_endpoint_key",
        ),
    )
    op.create_index(
        "ix_fd_raw_ingest_key_fetched_at",
        "fd_raw_ingest",
        ["source", "endpoint", "external_key", "fetched_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_fd_raw_ingest_key_fetched_at", table_name="fd_raw_ingest")
    op.drop_table("fd_raw_ingest")
