from __future__ import annotations

"""Closed failure taxonomy for upstream fetches and ingestion.

Failures are values, not exceptions: the client and the ingest service return
a FetchFailure describing the last observed classification, and callers branch
on `kind`. "Absent" (HTTP 404) is not a failure; it is a success-shaped outcome
reported by FetchOutcome.ABSENT.
"""

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import Optional


BODY_PREVIEW_LIMIT = 500


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"                    # 429
    UPSTREAM_SERVER_ERROR = "upstream_server_error"  # 5xx
    TRANSPORT_ERROR = "transport_error"              # connect/read timeout, I/O
    CLIENT_ERROR = "client_error"                    # 4xx other than 404/429
    BAD_CONTENT_TYPE = "bad_content_type"            # 2xx, not JSON
    PARSE_ERROR = "parse_error"                      # 2xx JSON, wrong shape
    SERIALIZATION_ERROR = "serialization_error"      # local re-serialization failed
    CANCELLED = "cancelled"


RETRYABLE_KINDS = frozenset(
    {
        FailureKind.RATE_LIMITED,
        FailureKind.UPSTREAM_SERVER_ERROR,
        FailureKind.TRANSPORT_ERROR,
    }
)


def body_preview(body: Optional[bytes], limit: int = BODY_PREVIEW_LIMIT) -> str:
    """First `limit` bytes of a response body, decoded leniently."""
    if not body:
        return ""
    return body[:limit].decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class FetchFailure:
    kind: FailureKind
    status: Optional[int] = None
    retry_after: Optional[timedelta] = None
    content_type: Optional[str] = None
    body_preview: Optional[str] = None
    message: Optional[str] = None
    attempts: int = 1

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def with_attempts(self, attempts: int) -> "FetchFailure":
        return replace(self, attempts=attempts)

    def describe(self) -> str:
        parts = [self.kind.value]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.retry_after is not None:
            parts.append(f"retry_after={int(self.retry_after.total_seconds())}s")
        if self.content_type:
            parts.append(f"content_type={self.content_type}")
        if self.message:
            parts.append(self.message)
        return " ".join(parts)

    @classmethod
    def rate_limited(cls, retry_after: timedelta) -> "FetchFailure":
        return cls(
            kind=FailureKind.RATE_LIMITED,
            status=429,
            retry_after=retry_after,
        )

    @classmethod
    def upstream_server_error(cls, status: int) -> "FetchFailure":
        return cls(kind=FailureKind.UPSTREAM_SERVER_ERROR, status=status)

    @classmethod
    def transport_error(cls, message: str) -> "FetchFailure":
        return cls(kind=FailureKind.TRANSPORT_ERROR, message=message)

    @classmethod
    def client_error(cls, status: int, body: Optional[bytes]) -> "FetchFailure":
        return cls(kind=FailureKind.CLIENT_ERROR, status=status, body_preview=body_preview(body))

    @classmethod
    def bad_content_type(cls, content_type: str, body: Optional[bytes]) -> "FetchFailure":
        return cls(
            kind=FailureKind.BAD_CONTENT_TYPE,
            content_type=content_type,
            body_preview=body_preview(body),
            message=f"Non-JSON response ({content_type or 'no content-type'})",
        )

    @classmethod
    def parse_error(cls, message: str) -> "FetchFailure":
        return cls(kind=FailureKind.PARSE_ERROR, message=message)

    @classmethod
    def serialization_error(cls, message: str) -> "FetchFailure":
        return cls(kind=FailureKind.SERIALIZATION_ERROR, message=message)

    @classmethod
    def cancelled(cls) -> "FetchFailure":
        return cls(kind=FailureKind.CANCELLED, message="cancelled by caller")


class IngestFailed(RuntimeError):
    """Raised by IngestOutput.raise_for_failure() for callers that want exceptions."""

    def __init__(self, failure: FetchFailure) -> None:
        super().__init__(failure.describe())
        self.failure = failure
