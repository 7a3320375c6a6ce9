from __future__ import annotations

"""Batch job: ingest football-data.org competitions into fd_raw_ingest.

STRICT:
- Only inserts into fd_raw_ingest (append-only).
- One session/transaction per competition; failure isolated per code.
- Structured JSON logs only; never logs payloads or the API key.

Run:
  python -m fdingest.jobs.run_ingestion            # codes from competitions.yaml
  python -m fdingest.jobs.run_ingestion PL CL      # explicit codes
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# Ensure `backend/` is on sys.path so `import matchlens...` works when run as a script.
BASE_DIR = Path(__file__).resolve().parents[2]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from fdingest.core.client import FootballDataClient  # noqa: E402
from fdingest.core.config import FootballDataSettings  # noqa: E402
from fdingest.core.coordinator import CompetitionFetcher, CompetitionIngestService, IngestResult  # noqa: E402
from fdingest.core.raw_store import RawIngestStore  # noqa: E402
from fdingest.core.registry import load_competitions_yaml, validate_code  # noqa: E402
from matchlens.core.clock import Clock, SystemClock, UTC  # noqa: E402
from matchlens.core.db import session_factory  # noqa: E402
from matchlens.core.env import load_env_if_present  # noqa: E402


logger = logging.getLogger("fdingest.jobs")

COMPETITIONS_YAML_ENV = "FDINGEST_COMPETITIONS_YAML"


def _log(event: dict) -> None:
    logger.info(json.dumps(event, ensure_ascii=False))


def default_competitions_path() -> Path:
    return Path(
        os.environ.get(COMPETITIONS_YAML_ENV)
        or Path(__file__).resolve().parents[1] / "config" / "competitions.yaml"
    )


def run(
    codes: Sequence[str],
    *,
    sessions: Callable[[], Session],
    client: CompetitionFetcher,
    clock: Clock,
    freshness: Optional[timedelta] = None,
) -> dict[str, int]:
    """Ingest each code in its own transaction and return run totals."""
    totals = {"competitions": 0, "inserted": 0, "skipped": 0, "failed": 0, "errors": 0}

    for code in codes:
        totals["competitions"] += 1
        session = sessions()
        try:
            service = CompetitionIngestService(RawIngestStore(session), client, clock, freshness=freshness)
            output = service.ingest(code)
            if output.result is IngestResult.INSERTED:
                session.commit()
                totals["inserted"] += 1
            else:
                session.rollback()
                if output.result is IngestResult.FAILED:
                    totals["failed"] += 1
                else:
                    totals["skipped"] += 1
        except SQLAlchemyError as e:
            session.rollback()
            totals["errors"] += 1
            _log({"event": "competition_error", "code": code, "error": type(e).__name__})
        finally:
            session.close()

    return totals


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Ingest football-data.org competitions.")
    parser.add_argument("codes", nargs="*", help="Competition codes (default: enabled entries in competitions.yaml)")
    parser.add_argument("--config", type=Path, default=None, help="Path to competitions.yaml")
    args = parser.parse_args(argv)

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    load_env_if_present()

    try:
        settings = FootballDataSettings.from_env()
        if args.codes:
            codes = [validate_code(c) for c in args.codes]
        else:
            codes = load_competitions_yaml(args.config or default_competitions_path()).enabled_codes()
        sessions = session_factory()
    except (RuntimeError, ValueError, OSError) as e:
        _log({"event": "run_config_error", "error": str(e)})
        return 2

    started_at = datetime.now(tz=UTC).isoformat()
    client = FootballDataClient.from_settings(settings)
    try:
        totals = run(codes, sessions=sessions, client=client, clock=SystemClock(), freshness=settings.freshness())
    finally:
        client.close()

    _log(
        {
            "event": "run_summary",
            "started_at": started_at,
            "finished_at": datetime.now(tz=UTC).isoformat(),
            **totals,
        }
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
