"""Ingestion core for football-data.org.

- Upstream client with a closed failure taxonomy and bounded retries
- Raw store with database-enforced insert-if-absent
- Ingest service gluing both behind a freshness window
"""

from fdingest.core.client import FetchOutcome, FetchResult, FootballDataClient, build_http_client
from fdingest.core.competition import Competition, CompetitionType, Stage
from fdingest.core.config import FootballDataSettings
from fdingest.core.coordinator import (
    COMPETITION_ENDPOINT,
    SOURCE,
    CompetitionIngestService,
    IngestOutput,
    IngestResult,
)
from fdingest.core.errors import FailureKind, FetchFailure, IngestFailed
from fdingest.core.problems import Problem, absent_problem, to_problem
from fdingest.core.raw_store import RawIngestStore
from fdingest.core.retry import RetryPolicy

__all__ = [
    "COMPETITION_ENDPOINT",
    "SOURCE",
    "Competition",
    "CompetitionIngestService",
    "CompetitionType",
    "FailureKind",
    "FetchFailure",
    "FetchOutcome",
    "FetchResult",
    "FootballDataClient",
    "FootballDataSettings",
    "IngestFailed",
    "IngestOutput",
    "IngestResult",
    "Problem",
    "RawIngestStore",
    "RetryPolicy",
    "Stage",
    "absent_problem",
    "build_http_client",
    "to_problem",
]
