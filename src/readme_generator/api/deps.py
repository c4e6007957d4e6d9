"""Shared endpoint dependencies."""

from __future__ import annotations

from fastapi import Request

from readme_generator.config import Settings, get_settings
from readme_generator.core.errors import ConfigurationError
from readme_generator.services.session_store import Session, get_session_store


def require_settings(feature: str):
    """Create an endpoint dependency that fails fast on missing configuration."""

    async def dependency() -> Settings:
        settings = get_settings()
        missing = settings.missing(feature)
        if missing:
            raise ConfigurationError(missing)
        return settings

    return dependency


async def require_session(request: Request) -> Session:
    """Return the caller's GitHub session or raise an auth error."""
    settings = get_settings()
    missing = settings.missing("session")
    if missing:
        raise ConfigurationError(missing)
    store = get_session_store()
    return store.require_session(request.cookies.get(settings.session_cookie_name))
