"""football-data.org HTTP client.

One logical operation: fetch a competition by code. Each HTTP attempt is
classified into the closed taxonomy in `fdingest.core.errors`; transient
classifications (429, 5xx, transport) are retried inside this client with
bounded backoff, everything else is returned after a single attempt.

Outcomes:
- 200 + JSON matching the schema -> FOUND
- 404 -> ABSENT (the competition does not exist; not an error)
- anything else -> FAILED with the last observed FetchFailure

The client holds no state between calls. Backoff counters live on the stack
of a single `fetch_competition` invocation.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from fdingest.core.competition import Competition
from fdingest.core.config import FootballDataSettings
from fdingest.core.errors import FetchFailure
from fdingest.core.retry import RetryPolicy


logger = logging.getLogger("fdingest.client")

COMPETITION_PATH = "/v4/competitions/{code}"
AUTH_HEADER = "X-Auth-Token"
RETRY_AFTER_FALLBACK_SECONDS = 2


class FetchOutcome(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class FetchResult:
    outcome: FetchOutcome
    resource: Optional[Competition] = None
    failure: Optional[FetchFailure] = None
    attempts: int = 0

    @classmethod
    def found(cls, resource: Competition) -> "FetchResult":
        return cls(outcome=FetchOutcome.FOUND, resource=resource)

    @classmethod
    def absent(cls) -> "FetchResult":
        return cls(outcome=FetchOutcome.ABSENT)

    @classmethod
    def failed(cls, failure: FetchFailure) -> "FetchResult":
        return cls(outcome=FetchOutcome.FAILED, failure=failure, attempts=failure.attempts)


# wait(seconds, cancel) -> True if cancelled while waiting
Wait = Callable[[float, Optional[threading.Event]], bool]


def _default_wait(seconds: float, cancel: Optional[threading.Event]) -> bool:
    if cancel is None:
        time.sleep(seconds)
        return False
    return cancel.wait(seconds)


def parse_retry_after(value: Optional[str]) -> int:
    """Retry-After in whole seconds (>= 1); fallback when missing or not numeric."""
    if value is None or not value.strip():
        return RETRY_AFTER_FALLBACK_SECONDS
    try:
        return max(1, int(value.strip()))
    except ValueError:
        return RETRY_AFTER_FALLBACK_SECONDS


def _is_json(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ())) or "<root>"
    msg = f"{first.get('type')} at {loc}: {first.get('msg')}"
    if len(errors) > 1:
        msg += f" (+{len(errors) - 1} more)"
    return msg


def build_http_client(settings: FootballDataSettings, *, transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    """httpx.Client for football-data.org with auth headers and mandatory timeouts."""
    return httpx.Client(
        base_url=settings.base_url,
        headers={
            "Accept": "application/json",
            AUTH_HEADER: settings.api_key,
            "User-Agent": settings.user_agent,
        },
        timeout=settings.timeout(),
        follow_redirects=False,
        transport=transport,
    )


class FootballDataClient:
    """Upstream client for `GET /v4/competitions/{code}`."""

    def __init__(
        self,
        http: httpx.Client,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        wait: Wait = _default_wait,
    ) -> None:
        self._http = http
        self._retry = retry_policy or RetryPolicy()
        self._wait = wait

    @classmethod
    def from_settings(cls, settings: FootballDataSettings) -> "FootballDataClient":
        return cls(build_http_client(settings), retry_policy=settings.retry_policy())

    def fetch_competition(self, code: str, *, cancel: Optional[threading.Event] = None) -> FetchResult:
        """Fetch one competition, retrying transient failures.

        `code` is expected to be validated by the caller. If `cancel` is set
        before an attempt or during a backoff wait, no further attempts are made
        and a CANCELLED failure is returned.
        """
        attempt = 0
        while True:
            if cancel is not None and cancel.is_set():
                return self._cancelled(code, attempt)

            attempt += 1
            result = self._attempt(code)
            if result.failure is None:
                return replace(result, attempts=attempt)

            failure = result.failure.with_attempts(attempt)
            if not self._retry.should_retry(failure, attempt):
                if failure.retryable:
                    logger.error(
                        "football-data.org competitions %s failed after %d attempt(s): %s",
                        code,
                        attempt,
                        failure.describe(),
                    )
                return FetchResult.failed(failure)

            delay = self._retry.delay_for(attempt, failure).total_seconds()
            logger.info(
                "Retrying football-data.org competitions %s in %.1fs (attempt %d/%d): %s",
                code,
                delay,
                attempt,
                self._retry.max_attempts,
                failure.describe(),
            )
            if self._wait(delay, cancel):
                return self._cancelled(code, attempt)

    def _cancelled(self, code: str, attempts: int) -> FetchResult:
        logger.info("Fetch of competitions %s cancelled after %d attempt(s)", code, attempts)
        return FetchResult.failed(FetchFailure.cancelled().with_attempts(attempts))

    def _attempt(self, code: str) -> FetchResult:
        path = COMPETITION_PATH.format(code=quote(code, safe=""))
        logger.debug("Calling football-data.org GET %s", path)
        try:
            response = self._http.get(path)
        except httpx.TransportError as e:
            logger.warning("Transport error calling football-data.org for competitions %s: %s", code, e)
            return FetchResult.failed(FetchFailure.transport_error(f"{type(e).__name__}: {e}"))
        except httpx.DecodingError as e:
            logger.error("Undecodable football-data.org response for competitions %s: %s", code, e)
            return FetchResult.failed(FetchFailure.parse_error(f"DecodingError: {e}"))
        return self.classify(code, response)

    def classify(self, code: str, response: httpx.Response) -> FetchResult:
        """Map a single HTTP response onto FOUND / ABSENT / FAILED."""
        status = response.status_code

        if status == 404:
            logger.debug("Competition not found at football-data.org: %s", code)
            return FetchResult.absent()

        if status == 429:
            seconds = parse_retry_after(response.headers.get("Retry-After"))
            return FetchResult.failed(FetchFailure.rate_limited(timedelta(seconds=seconds)))

        if status >= 500:
            return FetchResult.failed(FetchFailure.upstream_server_error(status))

        if not 200 <= status < 300:
            failure = FetchFailure.client_error(status, response.content)
            logger.warning(
                "football-data.org client error %d for competitions %s. Body: %s",
                status,
                code,
                failure.body_preview,
            )
            return FetchResult.failed(failure)

        content_type = response.headers.get("content-type", "")
        if not _is_json(content_type):
            failure = FetchFailure.bad_content_type(content_type, response.content)
            logger.error(
                "football-data.org returned non-JSON (%s) for competitions %s",
                content_type or "no content-type",
                code,
            )
            return FetchResult.failed(failure)

        body = response.content
        if not body.strip():
            logger.error("football-data.org returned an empty body for competitions %s", code)
            return FetchResult.failed(FetchFailure.parse_error("empty response body"))

        try:
            competition = Competition.from_json(body)
        except ValidationError as e:
            message = _validation_message(e)
            logger.error("Failed to parse football-data.org JSON for competitions %s: %s", code, message)
            return FetchResult.failed(FetchFailure.parse_error(message))

        return FetchResult.found(competition)

    def close(self) -> None:
        self._http.close()
