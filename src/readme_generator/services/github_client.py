"""Async GitHub API client with rate-limit awareness and retry.

Uses GitHub REST API v3 to:
- Read repository metadata, languages, trees and file contents
- Manage branch refs and file contents for README pull requests
- Open pull requests

Every call goes through :meth:`GitHubClient.call`, which consults and
updates the process-wide rate-limit tracker.

Reference: https://docs.github.com/en/rest
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

from readme_generator.config import get_settings
from readme_generator.core.errors import ErrorKind, ReadmeGeneratorError
from readme_generator.core.redactor import get_redactor
from readme_generator.ops.retry_policy import RetryPolicy
from readme_generator.services.rate_limit import (
    RateLimitState,
    RateLimitTracker,
    get_rate_limit_tracker,
)

logger = logging.getLogger(__name__)

# Writes are sent once. A retried POST can fail on state the first attempt
# already created.
RETRYABLE_METHODS = frozenset({"GET", "HEAD", "DELETE"})


class GitHubAPIError(ReadmeGeneratorError):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        detail: str | None = None,
        kind: ErrorKind | None = None,
    ):
        super().__init__(message, kind=kind, status_code=status_code, detail=detail)


class GitHubRateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded."""

    kind = ErrorKind.RATE_LIMITED


class GitHubNotFoundError(GitHubAPIError):
    """Raised when requested resource is not found."""

    kind = ErrorKind.NOT_FOUND


class GitHubForbiddenError(GitHubAPIError):
    """Raised on 403 responses that are not rate-limit rejections."""

    kind = ErrorKind.FORBIDDEN


class GitHubUnauthorizedError(GitHubAPIError):
    """Raised when GitHub rejects the credentials."""

    kind = ErrorKind.UNAUTHORIZED


class GitHubConflictError(GitHubAPIError):
    """Raised on 422 responses (existing ref, stale file revision)."""

    kind = ErrorKind.REMOTE_CONFLICT


class GitHubServerError(GitHubAPIError):
    """Raised on 5xx responses. Retryable."""

    kind = ErrorKind.SERVER_UNAVAILABLE


class GitHubNetworkError(GitHubAPIError):
    """Raised when GitHub could not be reached. Retryable."""

    kind = ErrorKind.NETWORK_ERROR


def rate_limit_message(state: RateLimitState, tracker: RateLimitTracker) -> str:
    if state.reset_at is not None:
        minutes = state.wait_minutes(tracker.now())
        return f"Rate limit exceeded. Try again in {minutes} minute(s)."
    return "Rate limit exceeded. Please wait before trying again."


class GitHubClient:
    """
    Async GitHub API client.

    Handles authentication, shared rate-limit state, retry of transient
    failures and translation of error responses.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        *,
        rate_limit: RateLimitTracker | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize GitHub client.

        Args:
            token: OAuth or personal access token (falls back to GITHUB_TOKEN)
            base_url: GitHub API base URL (default: https://api.github.com)
            rate_limit: Shared tracker; defaults to the process-wide one
            retry_policy: Retry bound and backoff for transient failures
            transport: Optional httpx transport (used by tests)
            sleep: Coroutine used between retry attempts
        """
        settings = get_settings()
        self.token = token or settings.github_token
        self.base_url = (base_url or settings.github_api_base_url).rstrip("/")
        self._timeout = settings.github_timeout_seconds
        self._rate_limit = rate_limit or get_rate_limit_tracker()
        self._retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.github_max_retries,
            backoff_seconds=settings.github_retry_backoff_seconds,
        )
        self._transport = transport
        self._sleep = sleep

        if not self.token:
            logger.debug("GitHub token not configured - using unauthenticated rate limits")

        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GitHubClient":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._build_headers(),
            timeout=httpx.Timeout(self._timeout, connect=10.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def rate_limit(self) -> RateLimitTracker:
        return self._rate_limit

    def _build_headers(self) -> dict[str, str]:
        """Build request headers with authentication."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "README-Generator/1.0",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def call(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Make an API request and decode the body.

        Returns:
            Parsed JSON for JSON responses, text otherwise, None for empty bodies
        """
        response = await self._request(method, path, **kwargs)
        return self._decode(response)

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make an API request, retrying transient failures of idempotent methods.

        Raises:
            GitHubRateLimitError: If rate limit exceeded
            GitHubNotFoundError: If resource not found
            GitHubAPIError: For other API errors
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._send(method, path, **kwargs)
            except GitHubAPIError as exc:
                if method.upper() not in RETRYABLE_METHODS:
                    raise
                decision = self._retry_policy.decide(attempt=attempt, exc=exc)
                if not decision.should_retry:
                    raise
                logger.warning(
                    "Transient GitHub failure, retrying",
                    extra={
                        "method": method,
                        "path": path,
                        "attempt": attempt,
                        "kind": exc.kind.value,
                        "status_code": exc.status_code,
                        "backoff_seconds": decision.backoff_seconds,
                    },
                )
                await self._sleep(decision.backoff_seconds)

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        state = self._rate_limit.read()
        if state.is_exhausted(self._rate_limit.now()):
            logger.info(
                "Skipping GitHub request, rate limit exhausted",
                extra={"method": method, "path": path},
            )
            raise GitHubRateLimitError(rate_limit_message(state, self._rate_limit))

        logger.debug(f"{method} {path}")
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise GitHubNetworkError(f"Could not reach GitHub: {type(exc).__name__}") from exc

        state = self._rate_limit.update(response.headers)
        self._raise_for_status(response, path, state)
        return response

    def _raise_for_status(
        self,
        response: httpx.Response,
        path: str,
        state: RateLimitState,
    ) -> None:
        status_code = response.status_code
        if status_code < 400:
            return

        detail = get_redactor().redact_text(response.text)

        if status_code == 404:
            raise GitHubNotFoundError(
                f"Resource not found: {path}. It does not exist or is private.",
                status_code=404,
                detail=detail,
            )

        if status_code in (403, 429):
            if response.headers.get("x-ratelimit-remaining") == "0" or status_code == 429:
                raise GitHubRateLimitError(
                    rate_limit_message(state, self._rate_limit),
                    status_code=status_code,
                    detail=detail,
                )
            raise GitHubForbiddenError(
                "GitHub denied access to this resource.",
                status_code=403,
                detail=detail,
            )

        if status_code == 401:
            raise GitHubUnauthorizedError(
                "GitHub rejected the supplied credentials.",
                status_code=401,
                detail=detail,
            )

        if status_code == 422:
            raise GitHubConflictError(
                "GitHub rejected the change as conflicting or invalid.",
                status_code=422,
                detail=detail,
            )

        if status_code >= 500:
            raise GitHubServerError(
                f"GitHub is unavailable ({status_code}).",
                status_code=status_code,
                detail=detail,
            )

        raise GitHubAPIError(
            f"GitHub API error: {status_code}",
            status_code=status_code,
            detail=detail,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        if "json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    # ------------------------------------------------------------------
    # Repository reads

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """Get repository metadata."""
        return await self.call("GET", f"/repos/{owner}/{repo}")

    async def get_languages(self, owner: str, repo: str) -> dict[str, int]:
        """Get the language breakdown (language -> bytes)."""
        data = await self.call("GET", f"/repos/{owner}/{repo}/languages")
        return data if isinstance(data, dict) else {}

    async def get_tree(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        """Get the full file tree of ``branch``."""
        return await self.call(
            "GET",
            f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}",
            params={"recursive": "1"},
        )

    async def get_contents(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> dict[str, Any]:
        """Get a file's contents entry (base64 content plus blob sha)."""
        params = {"ref": ref} if ref else None
        return await self.call(
            "GET",
            f"/repos/{owner}/{repo}/contents/{quote(path)}",
            params=params,
        )

    # ------------------------------------------------------------------
    # Writes used by the pull request workflow

    async def get_branch_ref(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        """Get the ref (and tip commit) of a branch."""
        return await self.call("GET", f"/repos/{owner}/{repo}/git/ref/heads/{quote(branch)}")

    async def create_branch(
        self,
        owner: str,
        repo: str,
        branch: str,
        sha: str,
    ) -> dict[str, Any]:
        """Create ``refs/heads/<branch>`` pointing at ``sha``."""
        return await self.call(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def delete_branch(self, owner: str, repo: str, branch: str) -> None:
        """Delete ``refs/heads/<branch>``."""
        await self.call("DELETE", f"/repos/{owner}/{repo}/git/refs/heads/{quote(branch)}")

    async def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        *,
        message: str,
        content_b64: str,
        branch: str,
        sha: str | None = None,
    ) -> dict[str, Any]:
        """Create or update a file. ``sha`` is required when the file exists."""
        body: dict[str, Any] = {
            "message": message,
            "content": content_b64,
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        return await self.call(
            "PUT",
            f"/repos/{owner}/{repo}/contents/{quote(path)}",
            json=body,
        )

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> dict[str, Any]:
        """Open a pull request from ``head`` into ``base``."""
        return await self.call(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
