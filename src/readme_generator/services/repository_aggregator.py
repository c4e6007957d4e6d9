"""Repository data aggregation.

Collects metadata, languages, the file tree and well-known manifest
files for one repository into a :class:`RepositorySnapshot`.

Stages:
1. Repository metadata (fatal on failure)
2. Language breakdown (fatal on failure)
3. Recursive file tree (best effort)
4. Manifest files, fetched concurrently (each best effort)
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from readme_generator.core.errors import ErrorKind, InputValidationError
from readme_generator.schemas.repository import (
    MAX_CONFIG_FILE_CHARS,
    MAX_DIRECTORIES,
    MAX_FILES,
    RepositorySnapshot,
)
from readme_generator.services.github_client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

CONFIG_FILE_ALLOWLIST: tuple[str, ...] = (
    "package.json",
    "requirements.txt",
    "Cargo.toml",
    "pyproject.toml",
    "go.mod",
    "composer.json",
    "Gemfile",
    "pom.xml",
    "build.gradle",
)

_URL_PATTERN = re.compile(r"github\.com/([^/\s]+)/([^/?#\s]+)")
_SHORT_PATTERN = re.compile(r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)$")


class AggregationStage(str, Enum):
    """Named steps of an aggregation, published in order."""

    FETCHING_METADATA = "fetching_metadata"
    FETCHING_LANGUAGES = "fetching_languages"
    ANALYZING_TREE = "analyzing_tree"
    READING_CONFIG_FILES = "reading_config_files"
    COMPLETE = "complete"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    AggregationStage.FETCHING_METADATA: "Fetching repository info...",
    AggregationStage.FETCHING_LANGUAGES: "Fetching languages...",
    AggregationStage.ANALYZING_TREE: "Analyzing file structure...",
    AggregationStage.READING_CONFIG_FILES: "Reading config files...",
    AggregationStage.COMPLETE: "Done",
}


class ProgressChannel:
    """Observable record of aggregation stages.

    Callers can poll :attr:`current`, read the full :attr:`history`
    afterwards, or subscribe to be told about each stage as it starts.
    """

    def __init__(self) -> None:
        self._history: list[AggregationStage] = []
        self._subscribers: list[Callable[[AggregationStage], None]] = []

    @property
    def current(self) -> AggregationStage | None:
        return self._history[-1] if self._history else None

    @property
    def history(self) -> tuple[AggregationStage, ...]:
        return tuple(self._history)

    def subscribe(self, callback: Callable[[AggregationStage], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, stage: AggregationStage) -> None:
        self._history.append(stage)
        logger.debug("Aggregation stage", extra={"stage": stage.value})
        for callback in self._subscribers:
            try:
                callback(stage)
            except Exception as exc:
                logger.warning(
                    "Progress subscriber failed",
                    extra={"stage": stage.value, "error": str(exc)},
                )


@dataclass(frozen=True)
class ConfigFileFetch:
    """Outcome of reading one manifest file."""

    path: str
    content: str | None = None
    truncated: bool = False
    error_kind: ErrorKind | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.content is not None


def parse_repository_reference(reference: str) -> tuple[str, str]:
    """
    Parse ``owner/repo`` or a GitHub URL.

    Raises:
        InputValidationError: If the reference is not recognised
    """
    text = (reference or "").strip()
    match = _URL_PATTERN.search(text) or _SHORT_PATTERN.match(text)
    if not match:
        raise InputValidationError(
            "Enter a GitHub repository as owner/repo or https://github.com/owner/repo"
        )
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        raise InputValidationError("Repository owner and name are required")
    return owner, repo


def decode_file_content(payload: object) -> str:
    """Decode a contents-API payload to text."""
    if not isinstance(payload, dict) or not isinstance(payload.get("content"), str):
        raise ValueError("Response has no inline file content")
    encoding = payload.get("encoding", "base64")
    if encoding != "base64":
        raise ValueError(f"Unsupported content encoding: {encoding}")
    try:
        raw = base64.b64decode(payload["content"])
    except (binascii.Error, ValueError) as exc:
        raise ValueError("File content is not valid base64") from exc
    return raw.decode("utf-8", errors="replace")


class RepositoryAggregator:
    """Builds a :class:`RepositorySnapshot` through a shared GitHub client."""

    def __init__(
        self,
        client: GitHubClient,
        *,
        config_files: tuple[str, ...] = CONFIG_FILE_ALLOWLIST,
        max_config_chars: int = MAX_CONFIG_FILE_CHARS,
    ):
        self.client = client
        self.config_files = config_files
        self.max_config_chars = max_config_chars

    async def aggregate(
        self,
        owner: str,
        repo: str,
        progress: ProgressChannel | None = None,
    ) -> RepositorySnapshot:
        """
        Aggregate repository data.

        Args:
            owner: Repository owner
            repo: Repository name
            progress: Channel receiving each stage before it starts

        Returns:
            Immutable repository snapshot

        Raises:
            GitHubAPIError: If metadata or languages cannot be fetched
        """
        channel = progress or ProgressChannel()
        logger.info("Aggregating repository data", extra={"repo": f"{owner}/{repo}"})

        channel.publish(AggregationStage.FETCHING_METADATA)
        metadata = await self.client.get_repository(owner, repo)

        channel.publish(AggregationStage.FETCHING_LANGUAGES)
        languages = await self.client.get_languages(owner, repo)

        channel.publish(AggregationStage.ANALYZING_TREE)
        default_branch = str(metadata.get("default_branch") or "main")
        files, directories = await self._fetch_tree(owner, repo, default_branch)

        channel.publish(AggregationStage.READING_CONFIG_FILES)
        fetches = await self._fetch_config_files(owner, repo, files)

        snapshot = RepositorySnapshot.from_github(
            metadata,
            languages=languages,
            files=files,
            directories=directories,
            config_files={f.path: f.content for f in fetches if f.content is not None},
            truncated_config_files=[f.path for f in fetches if f.ok and f.truncated],
            config_fetch_failures={
                f.path: (f.error_kind or ErrorKind.UNEXPECTED).value
                for f in fetches
                if not f.ok
            },
        )

        channel.publish(AggregationStage.COMPLETE)
        logger.info(
            "Repository data aggregated",
            extra={
                "repo": snapshot.full_name,
                "files": len(snapshot.files),
                "directories": len(snapshot.directories),
                "config_files": sorted(snapshot.config_files),
                "config_failures": sorted(snapshot.config_fetch_failures),
            },
        )
        return snapshot

    async def _fetch_tree(
        self,
        owner: str,
        repo: str,
        branch: str,
    ) -> tuple[list[str], list[str]]:
        """Fetch blob and tree paths; empty lists if the tree is unavailable."""
        try:
            tree = await self.client.get_tree(owner, repo, branch)
        except GitHubAPIError as exc:
            logger.warning(
                "File tree unavailable, continuing without it",
                extra={"repo": f"{owner}/{repo}", "kind": exc.kind.value, "error": str(exc)},
            )
            return [], []

        entries = tree.get("tree") if isinstance(tree, dict) else None
        if not isinstance(entries, list):
            return [], []

        files = [e["path"] for e in entries if e.get("type") == "blob" and e.get("path")]
        directories = [e["path"] for e in entries if e.get("type") == "tree" and e.get("path")]
        return files[:MAX_FILES], directories[:MAX_DIRECTORIES]

    async def _fetch_config_files(
        self,
        owner: str,
        repo: str,
        files: list[str],
    ) -> list[ConfigFileFetch]:
        present = set(files)
        candidates = [path for path in self.config_files if path in present]
        if not candidates:
            return []
        return list(
            await asyncio.gather(
                *(self._fetch_config_file(owner, repo, path) for path in candidates)
            )
        )

    async def _fetch_config_file(self, owner: str, repo: str, path: str) -> ConfigFileFetch:
        try:
            payload = await self.client.get_contents(owner, repo, path)
            content = decode_file_content(payload)
        except GitHubAPIError as exc:
            logger.warning(
                "Config file fetch failed",
                extra={"repo": f"{owner}/{repo}", "path": path, "kind": exc.kind.value},
            )
            return ConfigFileFetch(path=path, error_kind=exc.kind, error_message=str(exc))
        except ValueError as exc:
            logger.warning(
                "Config file could not be decoded",
                extra={"repo": f"{owner}/{repo}", "path": path, "error": str(exc)},
            )
            return ConfigFileFetch(
                path=path,
                error_kind=ErrorKind.UNEXPECTED,
                error_message=str(exc),
            )

        truncated = len(content) > self.max_config_chars
        return ConfigFileFetch(
            path=path,
            content=content[: self.max_config_chars],
            truncated=truncated,
        )
