"""Test configuration and fixtures."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from github_fakes import TEST_AUTH_SECRET
from readme_generator.config import get_settings
from readme_generator.main import create_app
from readme_generator.services.rate_limit import get_rate_limit_tracker


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Give every test a clean environment and shared rate-limit state."""
    for name in (
        "GITHUB_TOKEN",
        "ANTHROPIC_API_KEY",
        "GITHUB_CLIENT_ID",
        "GITHUB_CLIENT_SECRET",
        "AUTH_SECRET",
        "GITHUB_API_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GENERATION_BACKEND", "mock")
    monkeypatch.setenv("LOG_FORMAT", "text")
    monkeypatch.setenv("COOKIE_SECURE", "false")
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://testserver")
    get_settings.cache_clear()
    get_rate_limit_tracker().reset()
    yield
    get_settings.cache_clear()
    get_rate_limit_tracker().reset()

@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create test client for API tests."""
    app = create_app()
    with TestClient(app) as c:
        yield c

@pytest.fixture
def auth_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Configure OAuth client credentials and the session secret."""
    monkeypatch.setenv("GITHUB_CLIENT_ID", "client-id")
    monkeypatch.setenv("GITHUB_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("AUTH_SECRET", TEST_AUTH_SECRET)
    get_settings.cache_clear()
