"""Schemas for aggregated repository data."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MAX_FILES = 150
MAX_DIRECTORIES = 50
MAX_CONFIG_FILE_CHARS = 2000


class RepositorySnapshot(BaseModel):
    """Point-in-time facts about a repository, used as prompt input."""

    model_config = ConfigDict(frozen=True)

    # Identity
    name: str = Field(..., description="Repository name")
    full_name: str = Field(..., description="owner/name")
    description: str | None = Field(None, description="Repository description")
    owner: str = Field(..., description="Owner login")

    # Counts
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    open_issues: int = 0

    # Metadata
    license: str | None = Field(None, description="SPDX identifier or license name")
    topics: list[str] = Field(default_factory=list)
    homepage: str | None = None
    default_branch: str = "main"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Contents
    languages: dict[str, int] = Field(default_factory=dict, description="Language -> bytes")
    files: list[str] = Field(default_factory=list, max_length=MAX_FILES)
    directories: list[str] = Field(default_factory=list, max_length=MAX_DIRECTORIES)
    config_files: dict[str, str] = Field(
        default_factory=dict,
        description="Manifest filename -> decoded (possibly truncated) text",
    )
    truncated_config_files: list[str] = Field(
        default_factory=list,
        description="Config files whose content was cut to the size limit",
    )
    config_fetch_failures: dict[str, str] = Field(
        default_factory=dict,
        description="Config files that could not be read -> error kind",
    )

    @classmethod
    def from_github(
        cls,
        metadata: dict[str, Any],
        *,
        languages: dict[str, int],
        files: list[str],
        directories: list[str],
        config_files: dict[str, str],
        truncated_config_files: list[str],
        config_fetch_failures: dict[str, str],
    ) -> "RepositorySnapshot":
        """Build a snapshot from the GitHub repository payload."""
        owner = metadata.get("owner") or {}
        license_info = metadata.get("license") or {}
        license_id = license_info.get("spdx_id")
        if not license_id or license_id == "NOASSERTION":
            license_id = license_info.get("name") or license_id

        topics: list[str] = []
        for topic in metadata.get("topics") or []:
            if isinstance(topic, str) and topic not in topics:
                topics.append(topic)

        return cls(
            name=str(metadata.get("name", "")),
            full_name=str(metadata.get("full_name", "")),
            description=metadata.get("description") or None,
            owner=str(owner.get("login", "")),
            stars=int(metadata.get("stargazers_count") or 0),
            forks=int(metadata.get("forks_count") or 0),
            watchers=int(metadata.get("watchers_count") or 0),
            open_issues=int(metadata.get("open_issues_count") or 0),
            license=license_id or None,
            topics=topics,
            homepage=metadata.get("homepage") or None,
            default_branch=str(metadata.get("default_branch") or "main"),
            created_at=metadata.get("created_at"),
            updated_at=metadata.get("updated_at"),
            languages={str(k): int(v) for k, v in languages.items()},
            files=files[:MAX_FILES],
            directories=directories[:MAX_DIRECTORIES],
            config_files=config_files,
            truncated_config_files=truncated_config_files,
            config_fetch_failures=config_fetch_failures,
        )


class SnapshotRequest(BaseModel):
    """Request to aggregate a repository."""

    repository: str = Field(..., min_length=1, description="owner/repo or a GitHub URL")


class SnapshotResponse(BaseModel):
    snapshot: RepositorySnapshot
    stages: list[str] = Field(default_factory=list, description="Progress labels in the order reached")
