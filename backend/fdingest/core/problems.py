"""Map ingest failures onto caller-facing HTTP problems.

An HTTP adapter in front of the ingest service turns a FetchFailure into a
status code, a problem type URI, a short title, a detail string and optional
headers. The mapping
is total over FailureKind; a kind missing here is a programming error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from fdingest.core.errors import BODY_PREVIEW_LIMIT, FailureKind, FetchFailure


UPSTREAM = "football-data.org"
PROBLEM_TYPE_BASE = "https://api.jstats.org/problems/"
RATE_LIMIT_TYPE = PROBLEM_TYPE_BASE + "rate-limit"


@dataclass(frozen=True, slots=True)
class Problem:
    status: int
    title: str
    detail: str
    headers: dict[str, str] = field(default_factory=dict)
    # Defaults to PROBLEM_TYPE_BASE + status.
    type: str = ""

    def __post_init__(self) -> None:
        if not self.type:
            object.__setattr__(self, "type", f"{PROBLEM_TYPE_BASE}{self.status}")

    def to_dict(self) -> dict[str, object]:
        """RFC 7807 body (application/problem+json)."""
        return {"type": self.type, "title": self.title, "status": self.status, "detail": self.detail}


def _with_preview(leading: str, preview: Optional[str]) -> str:
    if not preview or not preview.strip():
        return leading
    return f"{leading}: {preview[:BODY_PREVIEW_LIMIT]}"


def _client_error(failure: FetchFailure) -> Problem:
    status = failure.status or 400
    if status == 400:
        return Problem(400, "Bad Request", _with_preview(f"Bad request to {UPSTREAM} (likely token/parameters)", failure.body_preview))
    if status == 401:
        return Problem(401, "Unauthorized", _with_preview(f"Unauthorized at {UPSTREAM} (check X-Auth-Token)", failure.body_preview))
    if status == 403:
        return Problem(403, "Forbidden", _with_preview(f"Forbidden at {UPSTREAM} (token lacks permissions)", failure.body_preview))
    return Problem(status, "Request Failed", _with_preview(f"Upstream {status} from {UPSTREAM}", failure.body_preview))


def to_problem(failure: FetchFailure) -> Problem:
    kind = failure.kind

    if kind is FailureKind.RATE_LIMITED:
        seconds = int(failure.retry_after.total_seconds()) if failure.retry_after is not None else None
        headers = {"Retry-After": str(seconds)} if seconds is not None else {}
        detail = f"Rate limit reached at {UPSTREAM}"
        if seconds is not None:
            detail += f"; retry after ~{seconds}s"
        return Problem(429, "Too Many Requests", detail, headers, type=RATE_LIMIT_TYPE)

    if kind is FailureKind.UPSTREAM_SERVER_ERROR:
        return Problem(502, "Bad Gateway", f"Upstream error from {UPSTREAM}: HTTP {failure.status}")

    if kind is FailureKind.TRANSPORT_ERROR:
        return Problem(504, "Gateway Timeout", f"Upstream timeout while calling {UPSTREAM}")

    if kind is FailureKind.CLIENT_ERROR:
        return _client_error(failure)

    if kind is FailureKind.BAD_CONTENT_TYPE:
        return Problem(
            502,
            "Upstream returned non-JSON",
            f"Content-Type: {failure.content_type or 'none'}; Preview: {(failure.body_preview or '')[:BODY_PREVIEW_LIMIT]}",
        )

    if kind is FailureKind.PARSE_ERROR:
        return Problem(502, "Failed to parse upstream JSON", failure.message or "")

    if kind is FailureKind.SERIALIZATION_ERROR:
        return Problem(502, "Failed to store upstream JSON", failure.message or "")

    if kind is FailureKind.CANCELLED:
        return Problem(499, "Client Closed Request", "Request cancelled before the upstream call completed")

    raise ValueError(f"Unmapped failure kind: {kind!r}")


def absent_problem(code: str) -> Problem:
    return Problem(404, "Resource Not Found", f"Competition {code} not found or already stored")
