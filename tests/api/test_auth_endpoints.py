from __future__ import annotations

from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from github_fakes import TEST_AUTH_SECRET, RecordingTransport, json_response
from readme_generator.api import auth as auth_api
from readme_generator.auth.oauth_providers import GitHubOAuthProvider
from readme_generator.services.session_store import SessionStore, SessionUser


def _oauth_github(handler):
    def factory(settings):
        return GitHubOAuthProvider(
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            redirect_uri=settings.oauth_redirect_uri,
            scope=settings.github_oauth_scope,
            transport=RecordingTransport(handler),
        )

    return factory


def _github_ok(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/login/oauth/access_token":
        return json_response(200, {"access_token": "gho_user_token"})
    if request.url.path == "/user":
        return json_response(
            200,
            {"id": 99, "login": "octocat", "name": "Octo", "avatar_url": "https://a.test/o.png", "email": None},
        )
    return json_response(404, {})


def _sealed_session(created_at: datetime | None = None) -> str:
    store = SessionStore(TEST_AUTH_SECRET)
    session = store.new_session("gho_user_token", SessionUser(id=99, login="octocat"))
    if created_at is not None:
        session = type(session)(token=session.token, user=session.user, created_at=created_at)
    return store.seal(session)


def _redirect_error(response: httpx.Response) -> str | None:
    query = parse_qs(urlparse(response.headers["location"]).query)
    return query.get("error", [None])[0]


def test_login_redirects_to_github_with_state_cookie(client: TestClient, auth_env: None) -> None:
    response = client.get("/api/v1/auth/login", follow_redirects=False)

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    query = parse_qs(location.query)
    assert location.netloc == "github.com"
    assert query["scope"] == ["repo read:user user:email"]
    assert query["redirect_uri"] == ["http://testserver/api/v1/auth/callback"]
    assert response.cookies.get("oauth_state") == query["state"][0]
    assert "Max-Age=600" in response.headers["set-cookie"]


def test_login_without_client_id_is_configuration_error(client: TestClient) -> None:
    response = client.get("/api/v1/auth/login", follow_redirects=False)

    assert response.status_code == 500
    assert response.json()["code"] == "configuration_error"


def test_callback_sets_session_and_clears_state(
    client: TestClient, auth_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(auth_api, "get_oauth_provider", _oauth_github(_github_ok))
    client.cookies.set("oauth_state", "expected")

    response = client.get(
        "/api/v1/auth/callback",
        params={"code": "abc", "state": "expected"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == "http://testserver/"
    session_value = response.cookies.get("session")
    assert session_value
    session = SessionStore(TEST_AUTH_SECRET).require_session(session_value)
    assert session.token == "gho_user_token"
    assert session.user.login == "octocat"
    assert any(
        header.startswith("oauth_state=") and "Max-Age=0" in header
        for header in response.headers.get_list("set-cookie")
    )


@pytest.mark.parametrize(
    ("params", "cookie", "expected"),
    [
        ({"error": "access_denied"}, "s", "oauth_denied"),
        ({"state": "s"}, "s", "no_code"),
        ({"code": "abc", "state": "forged"}, "s", "invalid_state"),
        ({"code": "abc", "state": "s"}, None, "invalid_state"),
    ],
)
def test_callback_errors_redirect_home_with_code(
    client: TestClient,
    auth_env: None,
    params: dict[str, str],
    cookie: str | None,
    expected: str,
) -> None:
    if cookie:
        client.cookies.set("oauth_state", cookie)

    response = client.get("/api/v1/auth/callback", params=params, follow_redirects=False)

    assert response.status_code == 302
    assert _redirect_error(response) == expected


def test_callback_reports_token_exchange_failure(
    client: TestClient, auth_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        auth_api,
        "get_oauth_provider",
        _oauth_github(lambda request: json_response(200, {"error": "bad_verification_code"})),
    )
    client.cookies.set("oauth_state", "s")

    response = client.get(
        "/api/v1/auth/callback", params={"code": "abc", "state": "s"}, follow_redirects=False
    )

    assert _redirect_error(response) == "token_exchange_failed"
    assert "session" not in response.cookies


def test_callback_without_secrets_is_config_error(client: TestClient) -> None:
    client.cookies.set("oauth_state", "s")
    response = client.get(
        "/api/v1/auth/callback", params={"code": "abc", "state": "s"}, follow_redirects=False
    )
    assert _redirect_error(response) == "config_error"


def test_status_reports_user_without_token(client: TestClient, auth_env: None) -> None:
    client.cookies.set("session", _sealed_session())

    response = client.get("/api/v1/auth/status")

    assert response.status_code == 200
    body = response.json()
    assert body["authenticated"] is True
    assert body["user"]["login"] == "octocat"
    assert "gho_user_token" not in response.text


def test_status_clears_expired_session(client: TestClient, auth_env: None) -> None:
    client.cookies.set("session", _sealed_session(datetime.now(UTC) - timedelta(days=31)))

    response = client.get("/api/v1/auth/status")

    assert response.json() == {"authenticated": False, "user": None}
    assert any(
        header.startswith("session=") and "Max-Age=0" in header
        for header in response.headers.get_list("set-cookie")
    )


def test_status_without_cookie(client: TestClient, auth_env: None) -> None:
    response = client.get("/api/v1/auth/status")
    assert response.json() == {"authenticated": False, "user": None}


def test_logout_clears_session(client: TestClient, auth_env: None) -> None:
    client.cookies.set("session", _sealed_session())

    response = client.get("/api/v1/auth/logout", follow_redirects=False)

    assert response.status_code == 302
    assert any(
        header.startswith("session=") and "Max-Age=0" in header
        for header in response.headers.get_list("set-cookie")
    )
