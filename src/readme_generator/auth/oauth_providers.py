"""GitHub OAuth provider.

Implements the authorization code flow used to obtain a user token with
permission to push README branches and open pull requests.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from readme_generator.core.redactor import get_redactor

logger = logging.getLogger(__name__)


@dataclass
class OAuthUserInfo:
    """User information retrieved from GitHub."""
    provider_id: int | None
    login: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    email: Optional[str] = None


class OAuthError(Exception):
    """Raised when OAuth flow fails.

    ``code`` is the short error code reported back to the browser.
    """

    def __init__(self, message: str, code: str = "unexpected"):
        super().__init__(message)
        self.code = code


class GitHubOAuthProvider:
    """GitHub OAuth 2.0 provider."""

    AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
    TOKEN_URL = "https://github.com/login/oauth/access_token"
    USER_URL = "https://api.github.com/user"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scope: str = "repo read:user user:email",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize GitHub OAuth provider.

        Args:
            client_id: GitHub OAuth app client ID
            client_secret: GitHub OAuth app client secret
            redirect_uri: Callback URL for OAuth flow
            scope: OAuth scopes to request
            transport: Optional httpx transport (used by tests)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30, transport=self._transport)
        return self._client

    def get_authorization_url(self, state: str) -> str:
        """Get the URL to redirect users to for authorization.

        Args:
            state: Random state parameter for CSRF protection

        Returns:
            Authorization URL
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": state,
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        """Exchange authorization code for access token.

        Raises:
            OAuthError: If exchange fails
        """
        client = await self._get_client()

        try:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise OAuthError(
                f"Token exchange failed: {type(exc).__name__}", code="token_exchange_failed"
            ) from exc

        if response.status_code != 200:
            raise OAuthError(
                f"Token exchange failed: {get_redactor().redact_text(response.text)}",
                code="token_exchange_failed",
            )

        data = response.json()

        if "error" in data:
            raise OAuthError(
                f"OAuth error: {data.get('error_description', data['error'])}",
                code="token_exchange_failed",
            )

        access_token = data.get("access_token")
        if not access_token:
            raise OAuthError("No access token in response", code="token_exchange_failed")

        return access_token

    async def get_user_info(self, access_token: str) -> OAuthUserInfo:
        """Get the profile of the user who owns ``access_token``.

        The email is whatever the public profile exposes and may be None.

        Raises:
            OAuthError: If user info retrieval fails
        """
        client = await self._get_client()
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }

        try:
            response = await client.get(self.USER_URL, headers=headers)
        except httpx.HTTPError as exc:
            raise OAuthError(
                f"Failed to get user info: {type(exc).__name__}", code="user_fetch_failed"
            ) from exc

        if response.status_code != 200:
            raise OAuthError(
                f"Failed to get user info: {response.status_code}", code="user_fetch_failed"
            )

        user_data: dict[str, Any] = response.json()
        if not user_data.get("login"):
            raise OAuthError("User profile has no login", code="user_fetch_failed")

        return OAuthUserInfo(
            provider_id=user_data.get("id"),
            login=user_data["login"],
            name=user_data.get("name"),
            avatar_url=user_data.get("avatar_url"),
            email=user_data.get("email"),
        )

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
