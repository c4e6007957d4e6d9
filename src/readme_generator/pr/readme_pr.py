"""README pull request workflow.

Opens a pull request that adds or replaces README.md:

1. Read the tip commit of the base branch
2. Create a new branch at that commit
3. Look up the existing README.md blob (optional)
4. Write README.md on the new branch (deletes the branch again on failure)
5. Open the pull request

Steps run strictly in order; each depends on the previous step's output.
"""

import base64
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from readme_generator.core.errors import ErrorKind, ReadmeGeneratorError
from readme_generator.schemas.pr import PullRequestResult, WorkflowStep
from readme_generator.services.github_client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

README_PATH = "README.md"
COMMIT_MESSAGE = "Update README.md via README Generator"
PR_TITLE = "Update README.md"
PR_BODY_TEMPLATE = """## 📝 README Update

This README was automatically generated using README Generator.

### Changes
- Updated README.md with new content

---
*Generated on {date}*"""


class WorkflowError(ReadmeGeneratorError):
    """Failure of one workflow step.

    ``operation`` names the remote call that failed; ``step`` is the last
    state the workflow reached before it.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        step: WorkflowStep,
        kind: ErrorKind,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(message, kind=kind, status_code=status_code, detail=detail)
        self.operation = operation
        self.step = step


@dataclass
class WorkflowState:
    """Transient state of one pull request attempt."""

    owner: str
    repo: str
    base_branch: str
    new_branch: str
    step: WorkflowStep = WorkflowStep.START
    base_commit_sha: str | None = None
    existing_file_sha: str | None = None
    created_branch: bool = False
    written_file: bool = False


class ReadmePullRequestWorkflow:
    """
    Publishes README content as a pull request.

    Uses the caller's GitHub token, so the branch, commit and PR are
    attributed to the signed-in user.
    """

    def __init__(
        self,
        client: GitHubClient,
        *,
        branch_prefix: str = "readme-update",
        clock: Callable[[], float] = time.time,
        suffix_factory: Callable[[], str] = lambda: secrets.token_hex(3),
    ):
        """
        Initialize workflow.

        Args:
            client: GitHub client authenticated as the user
            branch_prefix: Prefix of generated branch names
            clock: Returns the current epoch time in seconds
            suffix_factory: Random suffix appended to branch names
        """
        self.client = client
        self.branch_prefix = branch_prefix
        self._clock = clock
        self._suffix_factory = suffix_factory

    def generate_branch_name(self) -> str:
        """
        Generate a branch name like ``readme-update-1718000000000-a1b2c3``.

        The random suffix keeps concurrent requests in the same
        millisecond from colliding.
        """
        millis = int(self._clock() * 1000)
        return f"{self.branch_prefix}-{millis}-{self._suffix_factory()}"

    async def run(
        self,
        owner: str,
        repo: str,
        content: str,
        base_branch: str | None = None,
    ) -> PullRequestResult:
        """
        Run all steps.

        Args:
            owner: Repository owner
            repo: Repository name
            content: README markdown
            base_branch: Target branch (defaults to ``main``)

        Returns:
            PullRequestResult with the PR URL and number

        Raises:
            WorkflowError: If any step fails
        """
        state = WorkflowState(
            owner=owner,
            repo=repo,
            base_branch=base_branch or "main",
            new_branch=self.generate_branch_name(),
        )
        started = time.perf_counter()
        logger.info(
            "Creating README pull request",
            extra={"repo": f"{owner}/{repo}", "base": state.base_branch, "branch": state.new_branch},
        )

        try:
            await self._fetch_base_ref(state)
            await self._create_branch(state)
            await self._check_existing_file(state)
            await self._write_file(state, content)
            result = await self._open_pull_request(state)
        except WorkflowError as exc:
            state.step = WorkflowStep.FAILED
            logger.warning(
                "README pull request failed",
                extra={
                    "repo": f"{owner}/{repo}",
                    "operation": exc.operation,
                    "last_step": exc.step.value,
                    "kind": exc.kind.value,
                    "status_code": exc.status_code,
                    "detail": exc.detail,
                },
            )
            raise

        logger.info(
            "README pull request created",
            extra={
                "repo": f"{owner}/{repo}",
                "pr_number": result.pr_number,
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return result

    async def _fetch_base_ref(self, state: WorkflowState) -> None:
        try:
            ref = await self.client.get_branch_ref(state.owner, state.repo, state.base_branch)
        except GitHubAPIError as exc:
            if exc.kind == ErrorKind.UNAUTHORIZED:
                raise self._error(
                    "get_base_ref",
                    state,
                    exc,
                    "GitHub session expired. Please sign in again.",
                    kind=ErrorKind.SESSION_EXPIRED,
                ) from exc
            if exc.kind == ErrorKind.NOT_FOUND:
                raise self._error(
                    "get_base_ref",
                    state,
                    exc,
                    f"Branch '{state.base_branch}' not found. Check the default branch name.",
                ) from exc
            if exc.kind == ErrorKind.FORBIDDEN:
                raise self._error(
                    "get_base_ref",
                    state,
                    exc,
                    "You don't have permission to access this repository.",
                ) from exc
            raise self._error("get_base_ref", state, exc, "Failed to get branch reference") from exc

        sha = (ref.get("object") or {}).get("sha") if isinstance(ref, dict) else None
        if not sha:
            raise WorkflowError(
                "Failed to get branch reference",
                operation="get_base_ref",
                step=state.step,
                kind=ErrorKind.UNEXPECTED,
                detail="Branch reference response did not include a commit",
            )
        state.base_commit_sha = sha
        state.step = WorkflowStep.BRANCH_REF_FETCHED
        logger.debug("Base commit resolved", extra={"sha": sha[:7]})

    async def _create_branch(self, state: WorkflowState) -> None:
        try:
            await self.client.create_branch(
                state.owner, state.repo, state.new_branch, state.base_commit_sha or ""
            )
        except GitHubAPIError as exc:
            if exc.kind == ErrorKind.REMOTE_CONFLICT:
                raise self._error(
                    "create_branch",
                    state,
                    exc,
                    "Branch already exists or invalid reference",
                ) from exc
            error = self._error("create_branch", state, exc, "Failed to create branch")
            if exc.retryable:
                # The ref may exist even though the response was lost.
                state.created_branch = True
                await self._delete_branch(state)
            raise error from exc

        state.created_branch = True
        state.step = WorkflowStep.BRANCH_CREATED
        logger.info("Created branch", extra={"branch": state.new_branch})

    async def _check_existing_file(self, state: WorkflowState) -> None:
        try:
            existing = await self.client.get_contents(
                state.owner, state.repo, README_PATH, ref=state.new_branch
            )
        except GitHubAPIError as exc:
            if exc.kind != ErrorKind.NOT_FOUND:
                logger.warning(
                    "Could not check for existing README, will create a new one",
                    extra={"kind": exc.kind.value, "status_code": exc.status_code},
                )
            existing = None

        if isinstance(existing, dict) and existing.get("sha"):
            state.existing_file_sha = existing["sha"]
            logger.debug("Existing README found, will update")
        else:
            logger.debug("No existing README, will create")
        state.step = WorkflowStep.FILE_CHECKED

    async def _write_file(self, state: WorkflowState, content: str) -> None:
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        try:
            await self.client.put_file(
                state.owner,
                state.repo,
                README_PATH,
                message=COMMIT_MESSAGE,
                content_b64=encoded,
                branch=state.new_branch,
                sha=state.existing_file_sha,
            )
        except GitHubAPIError as exc:
            error = self._error("write_file", state, exc, "Failed to update README file")
            await self._delete_branch(state)
            raise error from exc

        state.written_file = True
        state.step = WorkflowStep.FILE_WRITTEN

    async def _delete_branch(self, state: WorkflowState) -> None:
        """Remove the branch created by this attempt. Failures are only logged."""
        if not state.created_branch:
            return
        logger.warning("Cleaning up branch after failed step", extra={"branch": state.new_branch})
        try:
            await self.client.delete_branch(state.owner, state.repo, state.new_branch)
        except GitHubAPIError as exc:
            logger.error(
                "Failed to delete branch after failed step",
                extra={
                    "branch": state.new_branch,
                    "kind": exc.kind.value,
                    "status_code": exc.status_code,
                },
            )
            return
        state.created_branch = False

    async def _open_pull_request(self, state: WorkflowState) -> PullRequestResult:
        body = PR_BODY_TEMPLATE.format(date=datetime.now(UTC).date().isoformat())
        try:
            pr = await self.client.create_pull_request(
                state.owner,
                state.repo,
                title=PR_TITLE,
                body=body,
                head=state.new_branch,
                base=state.base_branch,
            )
        except GitHubAPIError as exc:
            raise self._error("create_pull_request", state, exc, "Failed to create pull request") from exc

        state.step = WorkflowStep.PR_CREATED
        return PullRequestResult(
            pr_url=str(pr.get("html_url", "")),
            pr_number=int(pr.get("number", 0)),
            branch=state.new_branch,
            base_branch=state.base_branch,
        )

    @staticmethod
    def _error(
        operation: str,
        state: WorkflowState,
        exc: GitHubAPIError,
        message: str,
        *,
        kind: ErrorKind | None = None,
    ) -> WorkflowError:
        return WorkflowError(
            message,
            operation=operation,
            step=state.step,
            kind=kind or exc.kind,
            status_code=exc.status_code,
            detail=exc.detail,
        )
