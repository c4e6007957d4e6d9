"""Schemas for README pull request operations."""

from enum import Enum

from pydantic import BaseModel, Field


class WorkflowStep(str, Enum):
    """Progress of a README pull request attempt."""

    START = "start"
    BRANCH_REF_FETCHED = "branch_ref_fetched"
    BRANCH_CREATED = "branch_created"
    FILE_CHECKED = "file_checked"
    FILE_WRITTEN = "file_written"
    PR_CREATED = "pr_created"
    FAILED = "failed"


class PullRequestRequest(BaseModel):
    """Request to open a pull request with generated README content."""

    owner: str = Field(..., min_length=1, description="Repository owner")
    repo: str = Field(..., min_length=1, description="Repository name")
    content: str = Field(..., min_length=1, description="README markdown")
    default_branch: str | None = Field(None, description="Base branch (defaults to main)")


class PullRequestResult(BaseModel):
    """Result of a successful README pull request."""

    pr_url: str = Field(..., description="PR web URL")
    pr_number: int = Field(..., description="GitHub PR number")
    branch: str = Field(..., description="Branch holding the README change")
    base_branch: str = Field(..., description="Target branch")
