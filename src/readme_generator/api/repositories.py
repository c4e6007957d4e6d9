"""Repository aggregation endpoint."""

import logging

from fastapi import APIRouter

from readme_generator.schemas.repository import SnapshotRequest, SnapshotResponse
from readme_generator.services.github_client import GitHubClient
from readme_generator.services.repository_aggregator import (
    ProgressChannel,
    RepositoryAggregator,
    parse_repository_reference,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/repositories", tags=["repositories"])


@router.post("/snapshot", response_model=SnapshotResponse)
async def create_snapshot(payload: SnapshotRequest) -> SnapshotResponse:
    """
    Collect metadata, languages, file tree and manifests of a repository.

    The response lists the progress stages that were reached, in order.
    """
    owner, repo = parse_repository_reference(payload.repository)
    progress = ProgressChannel()

    async with GitHubClient() as client:
        snapshot = await RepositoryAggregator(client).aggregate(owner, repo, progress=progress)

    return SnapshotResponse(
        snapshot=snapshot,
        stages=[stage.label for stage in progress.history],
    )
