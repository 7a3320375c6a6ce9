"""Deployment settings for the football-data.org integration.

Configuration is via environment variables (a `.env` file is loaded by
`from_env`). Defaults mirror the production values: 3 attempts, 1s initial
backoff capped at 8s, one-month freshness window.

API key resolution order:
1. a literal configured value (FOOTBALL_DATA_API_KEY_REF for `from_env`);
2. a `${NAME}` / `${ENV:NAME}` placeholder resolved from the environment;
3. the canonical FOOTBALL_DATA_API_KEY variable.
The source of the key travels with it (ResolvedApiKey.source) for diagnostics.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from fdingest.core.retry import RetryPolicy
from matchlens.core.env import load_env_if_present


logger = logging.getLogger("fdingest.config")

API_KEY_ENV = "FOOTBALL_DATA_API_KEY"
# Configured key for `from_env`: a literal or a ${NAME} placeholder.
API_KEY_REF_ENV = "FOOTBALL_DATA_API_KEY_REF"
DEFAULT_BASE_URL = "https://api.football-data.org"
DEFAULT_USER_AGENT = "matchlens-ingest/1.0"

_PLACEHOLDER = re.compile(r"^\$\{([^}]+)}$")


@dataclass(frozen=True, slots=True)
class ResolvedApiKey:
    value: str
    source: str

    def fingerprint(self) -> str:
        """Non-secret description: length and last two characters."""
        tail = self.value[-2:] if len(self.value) >= 2 else "??"
        return f"len={len(self.value)}, endsWith=**{tail}"


def resolve_api_key(configured: Optional[str], environ: Mapping[str, str]) -> ResolvedApiKey:
    configured = (configured or "").strip()
    if configured and not configured.startswith("${"):
        return ResolvedApiKey(configured, "configured")

    if configured:
        m = _PLACEHOLDER.match(configured)
        if m:
            name = m.group(1)
            # ${ENV:NAME} or ${NAME}
            if ":" in name:
                name = name.split(":", 1)[1]
            value = (environ.get(name) or "").strip()
            if value:
                return ResolvedApiKey(value, f"env:{name}")

    value = (environ.get(API_KEY_ENV) or "").strip()
    if value and not value.startswith("${"):
        return ResolvedApiKey(value, f"env:{API_KEY_ENV}")

    raise RuntimeError(
        "football-data.org API key missing. Provide it via the "
        f"{API_KEY_ENV} environment variable (or a .env file), "
        "or pass a ${NAME} placeholder naming another variable."
    )


class FootballDataSettings(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    api_key: str = Field(min_length=1, repr=False)
    api_key_source: str = "configured"
    connect_timeout: float = Field(default=5.0, gt=0)
    read_timeout: float = Field(default=10.0, gt=0)
    user_agent: str = DEFAULT_USER_AGENT

    # None means one calendar month.
    freshness_window_days: Optional[int] = Field(default=None, ge=1)

    max_attempts: int = Field(default=3, ge=1)
    initial_backoff: float = Field(default=1.0, ge=0)
    max_backoff: float = Field(default=8.0, ge=0)
    # None waits out any advertised Retry-After.
    max_retry_after: Optional[float] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FootballDataSettings":
        if environ is None:
            load_env_if_present()
            environ = os.environ

        key = resolve_api_key(environ.get(API_KEY_REF_ENV), environ)
        logger.info("football-data.org API key resolved from %s (%s)", key.source, key.fingerprint())

        values: dict[str, object] = {"api_key": key.value, "api_key_source": key.source}
        for field, var in (
            ("base_url", "FOOTBALL_DATA_BASE_URL"),
            ("connect_timeout", "FOOTBALL_DATA_CONNECT_TIMEOUT"),
            ("read_timeout", "FOOTBALL_DATA_READ_TIMEOUT"),
            ("user_agent", "FOOTBALL_DATA_USER_AGENT"),
            ("freshness_window_days", "FOOTBALL_DATA_FRESHNESS_DAYS"),
            ("max_attempts", "FOOTBALL_DATA_MAX_ATTEMPTS"),
            ("initial_backoff", "FOOTBALL_DATA_INITIAL_BACKOFF"),
            ("max_backoff", "FOOTBALL_DATA_MAX_BACKOFF"),
            ("max_retry_after", "FOOTBALL_DATA_MAX_RETRY_AFTER"),
        ):
            raw = environ.get(var)
            if raw is not None and raw.strip():
                values[field] = raw.strip()
        return cls.model_validate(values)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=timedelta(seconds=self.initial_backoff),
            max_delay=timedelta(seconds=self.max_backoff),
            max_retry_after=timedelta(seconds=self.max_retry_after) if self.max_retry_after is not None else None,
        )

    def freshness(self) -> Optional[timedelta]:
        if self.freshness_window_days is None:
            return None
        return timedelta(days=self.freshness_window_days)

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.read_timeout,
            pool=self.connect_timeout,
        )
