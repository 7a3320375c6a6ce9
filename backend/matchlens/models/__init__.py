"""SQLAlchemy models package.

All model modules are imported here so that Base.metadata is complete no matter
which module is imported first (Alembic autogenerate, create_all in tests).
"""

from matchlens.models import raw_ingest  # noqa: F401
