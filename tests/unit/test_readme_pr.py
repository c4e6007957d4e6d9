from __future__ import annotations

import base64
import json

import httpx
import pytest

from github_fakes import RecordingTransport, json_response
from readme_generator.core.errors import ErrorKind
from readme_generator.ops.retry_policy import RetryPolicy
from readme_generator.pr.readme_pr import (
    COMMIT_MESSAGE,
    PR_TITLE,
    README_PATH,
    ReadmePullRequestWorkflow,
    WorkflowError,
)
from readme_generator.schemas.pr import WorkflowStep
from readme_generator.services.github_client import GitHubClient
from readme_generator.services.rate_limit import RateLimitTracker

BRANCH = "readme-update-1718000000000-abc123"
BASE_SHA = "c" * 40
README_SHA = "d" * 40


def _client(transport: httpx.AsyncBaseTransport, max_retries: int = 0) -> GitHubClient:
    async def _no_sleep(seconds: float) -> None:
        return None

    return GitHubClient(
        token="gho_user_token",
        base_url="https://api.github.test",
        rate_limit=RateLimitTracker(),
        retry_policy=RetryPolicy(max_retries=max_retries),
        transport=transport,
        sleep=_no_sleep,
    )


def _workflow(client: GitHubClient) -> ReadmePullRequestWorkflow:
    return ReadmePullRequestWorkflow(
        client,
        clock=lambda: 1718000000.0,
        suffix_factory=lambda: "abc123",
    )


def _routes(overrides: dict[tuple[str, str], httpx.Response] | None = None):
    routes = {
        ("GET", "/repos/acme/widget/git/ref/heads/main"): json_response(
            200, {"ref": "refs/heads/main", "object": {"sha": BASE_SHA}}
        ),
        ("POST", "/repos/acme/widget/git/refs"): json_response(201, {"ref": f"refs/heads/{BRANCH}"}),
        ("GET", f"/repos/acme/widget/contents/{README_PATH}"): json_response(200, {"sha": README_SHA}),
        ("PUT", f"/repos/acme/widget/contents/{README_PATH}"): json_response(200, {"content": {}}),
        ("DELETE", f"/repos/acme/widget/git/refs/heads/{BRANCH}"): httpx.Response(204),
        ("POST", "/repos/acme/widget/pulls"): json_response(
            201, {"html_url": "https://github.com/acme/widget/pull/7", "number": 7}
        ),
    }
    routes.update(overrides or {})

    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get((request.method, request.url.path), json_response(404, {}))

    return handler


def _github(overrides: dict[tuple[str, str], httpx.Response] | None = None) -> RecordingTransport:
    return RecordingTransport(_routes(overrides))


def test_branch_name_has_timestamp_and_random_suffix() -> None:
    workflow = ReadmePullRequestWorkflow(_client(_github()), clock=lambda: 1718000000.5)
    name = workflow.generate_branch_name()
    prefix, millis, suffix = name.rsplit("-", 2)
    assert prefix == "readme-update"
    assert millis == "1718000000500"
    assert len(suffix) == 6
    assert workflow.generate_branch_name() != name


@pytest.mark.asyncio
async def test_happy_path_creates_branch_commit_and_pr() -> None:
    transport = _github()

    async with _client(transport) as client:
        result = await _workflow(client).run("acme", "widget", "# Widget\n", base_branch="main")

    assert result.pr_url == "https://github.com/acme/widget/pull/7"
    assert result.pr_number == 7
    assert result.branch == BRANCH
    assert [method for method, _ in transport.paths()] == ["GET", "POST", "GET", "PUT", "POST"]

    create_ref = json.loads(transport.requests[1].content)
    assert create_ref == {"ref": f"refs/heads/{BRANCH}", "sha": BASE_SHA}

    put = json.loads(transport.requests[3].content)
    assert put["message"] == COMMIT_MESSAGE
    assert put["branch"] == BRANCH
    assert put["sha"] == README_SHA
    assert base64.b64decode(put["content"]).decode() == "# Widget\n"

    pr = json.loads(transport.requests[4].content)
    assert pr["title"] == PR_TITLE
    assert pr["head"] == BRANCH
    assert pr["base"] == "main"


@pytest.mark.asyncio
async def test_new_readme_is_created_without_sha() -> None:
    transport = _github(
        {("GET", f"/repos/acme/widget/contents/{README_PATH}"): json_response(404, {})}
    )

    async with _client(transport) as client:
        await _workflow(client).run("acme", "widget", "# Widget\n")

    put = json.loads(transport.requests[3].content)
    assert "sha" not in put


@pytest.mark.asyncio
async def test_write_failure_deletes_branch_and_surfaces_write_error() -> None:
    transport = _github(
        {
            ("PUT", f"/repos/acme/widget/contents/{README_PATH}"): json_response(
                409, {"message": "conflict"}
            ),
            ("DELETE", f"/repos/acme/widget/git/refs/heads/{BRANCH}"): json_response(
                500, {"message": "delete failed too"}
            ),
        }
    )

    async with _client(transport) as client:
        with pytest.raises(WorkflowError) as exc_info:
            await _workflow(client).run("acme", "widget", "# Widget\n")

    assert ("DELETE", f"/repos/acme/widget/git/refs/heads/{BRANCH}") in transport.paths()
    error = exc_info.value
    assert error.message == "Failed to update README file"
    assert error.operation == "write_file"
    assert error.status_code == 409
    assert ("POST", "/repos/acme/widget/pulls") not in transport.paths()


@pytest.mark.asyncio
async def test_unauthorized_base_ref_signals_session_expired() -> None:
    transport = _github(
        {("GET", "/repos/acme/widget/git/ref/heads/main"): json_response(401, {"message": "Bad credentials"})}
    )

    async with _client(transport) as client:
        with pytest.raises(WorkflowError) as exc_info:
            await _workflow(client).run("acme", "widget", "# Widget\n")

    error = exc_info.value
    assert error.kind == ErrorKind.SESSION_EXPIRED
    assert error.kind != ErrorKind.UNAUTHORIZED
    assert error.requires_reauthentication is True
    assert error.step == WorkflowStep.START
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_missing_base_branch_reports_branch_name() -> None:
    async with _client(_github()) as client:
        with pytest.raises(WorkflowError) as exc_info:
            await _workflow(client).run("acme", "widget", "# Widget\n", base_branch="develop")

    assert exc_info.value.message == "Branch 'develop' not found. Check the default branch name."
    assert exc_info.value.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_existing_branch_is_remote_conflict() -> None:
    transport = _github(
        {("POST", "/repos/acme/widget/git/refs"): json_response(422, {"message": "Reference already exists"})}
    )

    async with _client(transport) as client:
        with pytest.raises(WorkflowError) as exc_info:
            await _workflow(client).run("acme", "widget", "# Widget\n")

    assert exc_info.value.kind == ErrorKind.REMOTE_CONFLICT
    assert exc_info.value.message == "Branch already exists or invalid reference"
    assert not any(method == "DELETE" for method, _ in transport.paths())


@pytest.mark.asyncio
async def test_dropped_connection_during_write_deletes_branch() -> None:
    routes = _routes()

    def handler(request: httpx.Request) -> httpx.Response:
        if (request.method, request.url.path) == ("PUT", f"/repos/acme/widget/contents/{README_PATH}"):
            raise httpx.RemoteProtocolError("Server disconnected without sending a response.", request=request)
        return routes(request)

    transport = RecordingTransport(handler)
    async with _client(transport) as client:
        with pytest.raises(WorkflowError) as exc_info:
            await _workflow(client).run("acme", "widget", "# Widget\n")

    error = exc_info.value
    assert error.kind == ErrorKind.NETWORK_ERROR
    assert error.operation == "write_file"
    assert error.step == WorkflowStep.FILE_CHECKED
    assert transport.paths()[-1] == ("DELETE", f"/repos/acme/widget/git/refs/heads/{BRANCH}")


@pytest.mark.asyncio
async def test_lost_create_branch_response_is_not_retried_and_cleans_up() -> None:
    create_responses = iter(
        [json_response(502, {"message": "Bad Gateway"}), json_response(422, {"message": "Reference already exists"})]
    )
    routes = _routes()

    def handler(request: httpx.Request) -> httpx.Response:
        if (request.method, request.url.path) == ("POST", "/repos/acme/widget/git/refs"):
            return next(create_responses)
        return routes(request)

    transport = RecordingTransport(handler)
    async with _client(transport, max_retries=2) as client:
        with pytest.raises(WorkflowError) as exc_info:
            await _workflow(client).run("acme", "widget", "# Widget\n")

    error = exc_info.value
    assert error.kind == ErrorKind.SERVER_UNAVAILABLE
    assert error.operation == "create_branch"
    assert error.message == "Failed to create branch"
    assert transport.paths() == [
        ("GET", "/repos/acme/widget/git/ref/heads/main"),
        ("POST", "/repos/acme/widget/git/refs"),
        ("DELETE", f"/repos/acme/widget/git/refs/heads/{BRANCH}"),
    ]
