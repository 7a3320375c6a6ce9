from __future__ import annotations

import os
import sys
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional

import httpx
import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


ROOT = Path(__file__).resolve().parents[2]

# Ensure `backend/` is importable so `matchlens` and `fdingest` resolve as top-level packages.
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from fdingest.core.client import FetchResult, FootballDataClient  # noqa: E402
from fdingest.core.retry import RetryPolicy  # noqa: E402
from matchlens.core.base import Base  # noqa: E402
from matchlens.core.clock import FixedClock  # noqa: E402
import matchlens.models  # noqa: E402,F401


UTC = timezone.utc

BASE_URL = "https://api.football-data.test"
NOW = datetime(2024, 10, 1, 12, 34, 56, tzinfo=UTC)


def _alembic_config(db_url: str) -> Config:
    cfg = Config(str(ROOT / "backend" / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "backend" / "alembic"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


@pytest.fixture(scope="session")
def engine(tmp_path_factory: pytest.TempPathFactory) -> Engine:
    """Migrated database for the test session.

    PostgreSQL when DATABASE_URL is set in the environment, otherwise a SQLite file.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        url = f"sqlite:///{tmp_path_factory.mktemp('db') / 'ingest.sqlite3'}"
    command.upgrade(_alembic_config(url), "head")
    return create_engine(url)


@pytest.fixture()
def db_session(engine: Engine) -> Generator[Session, None, None]:
    """DB session per test with rollback."""
    SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    session = SessionLocal()
    trans = session.begin()
    try:
        yield session
    finally:
        if trans.is_active:
            trans.rollback()
        session.close()


@pytest.fixture()
def sqlite_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Private SQLite file database for tests that commit."""
    eng = create_engine(f"sqlite:///{tmp_path / 'commit.sqlite3'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


def competition_payload(**overrides: Any) -> dict[str, Any]:
    """Trimmed real `/v4/competitions/PL` response."""
    payload: dict[str, Any] = {
        "area": {
            "id": 2072,
            "name": "England",
            "code": "ENG",
            "flag": "https://crests.football-data.org/770.svg",
        },
        "id": 2021,
        "name": "Premier League",
        "code": "PL",
        "type": "LEAGUE",
        "emblem": "https://crests.football-data.org/PL.png",
        "currentSeason": {
            "id": 2287,
            "startDate": "2024-08-16",
            "endDate": "2025-05-25",
            "currentMatchday": 7,
            "winner": None,
        },
        "seasons": [
            {
                "id": 2287,
                "startDate": "2024-08-16",
                "endDate": "2025-05-25",
                "currentMatchday": 7,
                "winner": None,
                "stages": ["REGULAR_SEASON"],
            },
            {
                "id": 1564,
                "startDate": "2022-08-05",
                "endDate": "2023-05-28",
                "currentMatchday": 38,
                "winner": {
                    "id": 65,
                    "name": "Manchester City FC",
                    "shortName": "Man City",
                    "tla": "MCI",
                    "crest": "https://crests.football-data.org/65.png",
                    "address": "SportCity Manchester M11 3FF",
                    "website": "https://www.mancity.com",
                    "founded": 1880,
                    "clubColors": "Sky Blue / White",
                    "venue": "Etihad Stadium",
                    "lastUpdated": "2022-02-10T19:48:37Z",
                },
                "stages": ["REGULAR_SEASON"],
            },
            {
                "id": 1,
                "startDate": "1948-08-21",
                "endDate": "1949-05-07",
                "currentMatchday": None,
                "winner": None,
                "stages": ["null"],
            },
        ],
        "lastUpdated": "2024-09-13T16:51:18Z",
    }
    payload.update(overrides)
    return payload


class Upstream:
    """Scripted football-data.org double behind httpx.MockTransport.

    `responses` are served in order; the last one repeats. A response may be an
    exception instance, which is raised from the transport instead.
    """

    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []
        self.waits: list[float] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self._responses)) - 1
        response = self._responses[index]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        # Fresh copy per request; a served Response is consumed by the client.
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    def wait(self, seconds: float, cancel: Optional[threading.Event]) -> bool:
        self.waits.append(seconds)
        return False

    def client(self, *, retry_policy: Optional[RetryPolicy] = None, wait=None) -> FootballDataClient:
        http = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(self.handle))
        return FootballDataClient(http, retry_policy=retry_policy, wait=wait or self.wait)


def json_response(status: int, body: Any, headers: Optional[dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(status, json=body, headers=headers)


class FakeClient:
    """In-process CompetitionFetcher returning canned results."""

    def __init__(self, *results: FetchResult) -> None:
        self._results = list(results)
        self.calls: list[str] = []

    def fetch_competition(self, code: str, *, cancel: Optional[threading.Event] = None) -> FetchResult:
        self.calls.append(code)
        return self._results[min(len(self.calls), len(self._results)) - 1]


class InMemoryStore:
    """RawStore double; `fetched_at` comes from the injected clock."""

    def __init__(self, clock: FixedClock) -> None:
        self._clock = clock
        self.rows: dict[tuple[str, str, str], dict[str, Any]] = {}

    def put(self, key: tuple[str, str, str], fetched_at: datetime, payload: Optional[dict[str, Any]] = None) -> None:
        self.rows[key] = {
            "id": uuid.uuid4(),
            "fetched_at": fetched_at,
            "last_modified": fetched_at,
            "payload": payload or {},
        }

    def exists(self, source: str, endpoint: str, external_key: str, since_inclusive: datetime) -> bool:
        row = self.rows.get((source, endpoint, external_key))
        return row is not None and row["fetched_at"] >= since_inclusive

    def insert_if_absent(
        self,
        source: str,
        endpoint: str,
        external_key: str,
        last_modified: datetime,
        payload: dict[str, Any],
    ) -> Optional[uuid.UUID]:
        key = (source, endpoint, external_key)
        if key in self.rows:
            return None
        self.put(key, self._clock.now(), payload)
        self.rows[key]["last_modified"] = last_modified
        return self.rows[key]["id"]
