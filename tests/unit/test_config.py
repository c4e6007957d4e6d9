from __future__ import annotations

import logging

import pytest

from readme_generator.config import REQUIRED_SETTINGS, Settings, get_settings
from readme_generator.core.errors import (
    AuthRequiredError,
    ConfigurationError,
    ErrorKind,
    SessionExpiredError,
)
from readme_generator.core.logging import RequestIdFilter, new_request_id, request_id_ctx


def test_missing_reports_unset_settings_per_feature(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_CLIENT_ID", "client-id")
    get_settings.cache_clear()
    settings = get_settings()

    assert settings.missing("oauth_login") == []
    assert settings.missing("oauth_callback") == ["GITHUB_CLIENT_SECRET", "AUTH_SECRET"]
    assert settings.missing("generation") == ["ANTHROPIC_API_KEY"]


def test_startup_warnings_are_not_duplicated() -> None:
    requirements = [frozenset(names) for names in REQUIRED_SETTINGS.values()]
    assert len(set(requirements)) == len(requirements)
    assert set(REQUIRED_SETTINGS) == {"generation", "oauth_login", "oauth_callback", "session"}


def test_defaults_match_documented_limits() -> None:
    settings = Settings()
    assert settings.github_max_retries == 2
    assert settings.generation_max_tokens == 4096
    assert settings.session_max_age_days == 30
    assert settings.oauth_state_ttl_seconds == 600
    assert settings.oauth_redirect_uri == "http://testserver/api/v1/auth/callback"


def test_configuration_error_lists_missing_names() -> None:
    error = ConfigurationError(["AUTH_SECRET"])
    assert error.kind == ErrorKind.CONFIGURATION_ERROR
    assert "AUTH_SECRET" in error.message
    assert error.requires_reauthentication is False


def test_auth_errors_ask_for_reauthentication() -> None:
    assert AuthRequiredError().requires_reauthentication is True
    assert SessionExpiredError().requires_reauthentication is True
    assert SessionExpiredError().message == "GitHub session expired. Please sign in again."


def test_request_id_filter_adds_context_value() -> None:
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)
    token = request_id_ctx.set("req_123")
    try:
        assert RequestIdFilter().filter(record) is True
    finally:
        request_id_ctx.reset(token)
    assert record.request_id == "req_123"
    assert new_request_id("pr").startswith("pr_")
