"""GitHub sign-in routes.

- ``/auth/login`` redirects to GitHub with a CSRF state cookie
- ``/auth/callback`` exchanges the code and stores the encrypted session
- ``/auth/status`` reports the signed-in user without exposing the token
- ``/auth/logout`` clears the session
"""

import logging
import secrets

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from readme_generator.api.deps import require_settings
from readme_generator.auth.oauth_providers import GitHubOAuthProvider, OAuthError
from readme_generator.config import Settings, get_settings
from readme_generator.services.session_store import (
    SessionStatus,
    SessionUser,
    get_session_store,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["authentication"])


class AuthUser(BaseModel):
    id: int | None = None
    login: str
    name: str | None = None
    avatar: str | None = None
    email: str | None = None


class AuthStatusResponse(BaseModel):
    """Sign-in state of the caller."""

    authenticated: bool
    user: AuthUser | None = None


def get_oauth_provider(settings: Settings) -> GitHubOAuthProvider:
    return GitHubOAuthProvider(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        redirect_uri=settings.oauth_redirect_uri,
        scope=settings.github_oauth_scope,
    )


def _home_url(settings: Settings, error: str | None = None) -> str:
    base = settings.public_base_url.rstrip("/") or ""
    return f"{base}/?error={error}" if error else f"{base}/"


def _set_cookie(response: Response, settings: Settings, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=max_age,
        path="/",
    )


def _clear_cookie(response: Response, settings: Settings, key: str) -> None:
    response.delete_cookie(
        key,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


def _error_redirect(settings: Settings, code: str, *, clear_state: bool = True) -> RedirectResponse:
    response = RedirectResponse(_home_url(settings, code), status_code=302)
    if clear_state:
        _clear_cookie(response, settings, settings.oauth_state_cookie_name)
    return response


@router.get("/login")
async def login(settings: Settings = Depends(require_settings("oauth_login"))) -> RedirectResponse:
    """Start the GitHub OAuth flow."""
    state = secrets.token_hex(16)
    provider = get_oauth_provider(settings)
    response = RedirectResponse(provider.get_authorization_url(state), status_code=302)
    _set_cookie(
        response,
        settings,
        settings.oauth_state_cookie_name,
        state,
        settings.oauth_state_ttl_seconds,
    )
    logger.info("Redirecting to GitHub for sign-in")
    return response


@router.get("/callback")
async def callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    """Finish the OAuth flow and store the session cookie.

    Failures redirect home with ``?error=<code>`` rather than rendering
    an error body, since the browser arrives here by navigation.
    """
    settings = get_settings()

    if error:
        logger.warning("GitHub sign-in denied", extra={"oauth_error": error})
        return _error_redirect(settings, "oauth_denied")

    if not code:
        logger.warning("OAuth callback without code")
        return _error_redirect(settings, "no_code")

    expected_state = request.cookies.get(settings.oauth_state_cookie_name)
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("OAuth state mismatch")
        return _error_redirect(settings, "invalid_state")

    missing = settings.missing("oauth_callback")
    if missing:
        logger.error("OAuth callback not configured", extra={"missing": missing})
        return _error_redirect(settings, "config_error")

    provider = get_oauth_provider(settings)
    try:
        token = await provider.exchange_code(code)
        info = await provider.get_user_info(token)
    except OAuthError as exc:
        logger.warning("GitHub sign-in failed", extra={"code": exc.code, "error": str(exc)})
        return _error_redirect(settings, exc.code)
    except Exception:
        logger.exception("Unexpected error during GitHub sign-in")
        return _error_redirect(settings, "unexpected")
    finally:
        await provider.close()

    store = get_session_store()
    session = store.new_session(
        token,
        SessionUser(
            id=info.provider_id,
            login=info.login,
            name=info.name,
            avatar=info.avatar_url,
            email=info.email,
        ),
    )

    response = RedirectResponse(_home_url(settings), status_code=302)
    _set_cookie(
        response,
        settings,
        settings.session_cookie_name,
        store.seal(session),
        settings.session_max_age_days * 24 * 60 * 60,
    )
    _clear_cookie(response, settings, settings.oauth_state_cookie_name)
    logger.info("GitHub sign-in complete", extra={"login": info.login})
    return response


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(
    request: Request,
    response: Response,
    settings: Settings = Depends(require_settings("session")),
) -> AuthStatusResponse:
    """Report whether the caller has a usable session."""
    lookup = get_session_store().open(request.cookies.get(settings.session_cookie_name))

    if lookup.status in (SessionStatus.INVALID, SessionStatus.EXPIRED):
        _clear_cookie(response, settings, settings.session_cookie_name)
    if not lookup.is_valid or lookup.session is None:
        return AuthStatusResponse(authenticated=False)

    user = lookup.session.user
    return AuthStatusResponse(
        authenticated=True,
        user=AuthUser(
            id=user.id,
            login=user.login,
            name=user.name,
            avatar=user.avatar,
            email=user.email,
        ),
    )


@router.get("/logout")
async def logout() -> RedirectResponse:
    """Clear the session cookie and go home."""
    settings = get_settings()
    response = RedirectResponse(_home_url(settings), status_code=302)
    _clear_cookie(response, settings, settings.session_cookie_name)
    return response
