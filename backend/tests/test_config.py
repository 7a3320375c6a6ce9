from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from pydantic import ValidationError

from fdingest.core.config import (
    API_KEY_ENV,
    API_KEY_REF_ENV,
    DEFAULT_BASE_URL,
    FootballDataSettings,
    ResolvedApiKey,
    resolve_api_key,
)


def test_literal_key_wins():
    key = resolve_api_key("abc123", {API_KEY_ENV: "other"})

    assert key == ResolvedApiKey("abc123", "configured")


@pytest.mark.parametrize("placeholder", ["${FD_TOKEN}", "${ENV:FD_TOKEN}"])
def test_placeholder_is_resolved_from_environment(placeholder):
    key = resolve_api_key(placeholder, {"FD_TOKEN": " tok-9 "})

    assert key.value == "tok-9"
    assert key.source == "env:FD_TOKEN"


def test_unresolved_placeholder_falls_back_to_canonical_variable():
    key = resolve_api_key("${MISSING}", {API_KEY_ENV: "canon"})

    assert key == ResolvedApiKey("canon", f"env:{API_KEY_ENV}")


@pytest.mark.parametrize(
    ("configured", "environ"),
    [
        (None, {}),
        ("   ", {}),
        ("${MISSING}", {}),
        (None, {API_KEY_ENV: "${FOOTBALL_DATA_API_KEY}"}),
    ],
)
def test_missing_key_is_a_config_error(configured, environ):
    with pytest.raises(RuntimeError, match=API_KEY_ENV):
        resolve_api_key(configured, environ)


def test_fingerprint_does_not_reveal_key():
    key = ResolvedApiKey("0123456789abcdef", "configured")

    assert key.fingerprint() == "len=16, endsWith=**ef"
    assert "0123" not in key.fingerprint()


def test_from_env_defaults():
    settings = FootballDataSettings.from_env({API_KEY_ENV: "k" * 32})

    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.api_key_source == f"env:{API_KEY_ENV}"
    assert settings.freshness() is None
    policy = settings.retry_policy()
    assert policy.max_retry_after is None
    assert policy.max_attempts == 3
    assert policy.initial_delay == timedelta(seconds=1)
    assert policy.max_delay == timedelta(seconds=8)
    assert settings.timeout().connect == 5.0
    assert settings.timeout().read == 10.0


def test_from_env_overrides():
    settings = FootballDataSettings.from_env(
        {
            API_KEY_ENV: "k" * 32,
            "FOOTBALL_DATA_BASE_URL": "http://localhost:8089",
            "FOOTBALL_DATA_READ_TIMEOUT": "2.5",
            "FOOTBALL_DATA_FRESHNESS_DAYS": "7",
            "FOOTBALL_DATA_MAX_ATTEMPTS": "5",
            "FOOTBALL_DATA_MAX_BACKOFF": "30",
            "FOOTBALL_DATA_MAX_RETRY_AFTER": "60",
        }
    )

    assert settings.base_url == "http://localhost:8089"
    assert settings.read_timeout == 2.5
    assert settings.freshness() == timedelta(days=7)
    assert settings.retry_policy().max_attempts == 5
    assert settings.retry_policy().max_delay == timedelta(seconds=30)
    assert settings.retry_policy().max_retry_after == timedelta(seconds=60)


def test_from_env_follows_configured_placeholder():
    settings = FootballDataSettings.from_env({API_KEY_REF_ENV: "${ENV:FD_TOKEN}", "FD_TOKEN": "tok-1"})

    assert settings.api_key == "tok-1"
    assert settings.api_key_source == "env:FD_TOKEN"


def test_from_env_literal_reference_is_configured():
    settings = FootballDataSettings.from_env({API_KEY_REF_ENV: "lit", API_KEY_ENV: "other"})

    assert settings.api_key == "lit"
    assert settings.api_key_source == "configured"


def test_invalid_numbers_are_rejected():
    with pytest.raises(ValidationError):
        FootballDataSettings.from_env({API_KEY_ENV: "k", "FOOTBALL_DATA_MAX_ATTEMPTS": "0"})


def test_api_key_is_not_in_repr_or_logs(caplog):
    caplog.set_level(logging.INFO, logger="fdingest.config")

    settings = FootballDataSettings.from_env({API_KEY_ENV: "super-secret-token"})

    assert "super-secret-token" not in repr(settings)
    assert "super-secret-token" not in caplog.text
    assert "endsWith=**en" in caplog.text
