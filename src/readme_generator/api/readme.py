"""README prompt, generation and pull request endpoints."""

import logging

from fastapi import APIRouter, Depends

from readme_generator.ai.anchors import get_slug_policy
from readme_generator.ai.llm_provider import get_generation_proxy, get_llm_provider
from readme_generator.ai.prompt_builder import compile_prompt
from readme_generator.api.deps import require_session, require_settings
from readme_generator.config import Settings, get_settings
from readme_generator.pr.readme_pr import ReadmePullRequestWorkflow
from readme_generator.schemas.generation import (
    GenerateRequest,
    GenerateResponse,
    PromptRequest,
    PromptResponse,
)
from readme_generator.schemas.pr import PullRequestRequest, PullRequestResult
from readme_generator.services.github_client import GitHubClient
from readme_generator.services.rate_limit import RateLimitTracker
from readme_generator.services.session_store import Session

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/readme", tags=["readme"])


async def _generation_settings() -> Settings:
    settings = get_settings()
    if settings.generation_backend == "mock":
        return settings
    return await require_settings("generation")()


@router.post("/prompt", response_model=PromptResponse)
async def build_prompt(payload: PromptRequest) -> PromptResponse:
    """Compile the generation prompt for a snapshot and option set."""
    settings = get_settings()
    prompt = compile_prompt(
        payload.snapshot,
        payload.options,
        slug_policy=get_slug_policy(settings.anchor_slug_policy),
    )
    return PromptResponse(
        prompt=prompt,
        length=len(prompt),
        repair_anchors=payload.options.needs_anchor_repair,
    )


@router.post("/generate", response_model=GenerateResponse)
async def generate_readme(
    payload: GenerateRequest,
    settings: Settings = Depends(_generation_settings),
) -> GenerateResponse:
    """Send a compiled prompt to the generation backend."""
    async with get_llm_provider() as provider:
        proxy = get_generation_proxy(provider)
        content = await proxy.generate(payload.prompt, repair_anchors=payload.repair_anchors)

    logger.info(
        "README generated",
        extra={"backend": settings.generation_backend, "content_length": len(content)},
    )
    return GenerateResponse(content=content)


@router.post("/pull-request", response_model=PullRequestResult)
async def create_pull_request(
    payload: PullRequestRequest,
    session: Session = Depends(require_session),
) -> PullRequestResult:
    """Open a pull request with the README content as the signed-in user."""
    # The user's token has its own rate-limit budget.
    async with GitHubClient(token=session.token, rate_limit=RateLimitTracker()) as client:
        workflow = ReadmePullRequestWorkflow(client)
        return await workflow.run(
            payload.owner,
            payload.repo,
            payload.content,
            base_branch=payload.default_branch,
        )
