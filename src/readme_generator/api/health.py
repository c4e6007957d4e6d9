"""Health check endpoints for monitoring and load balancer probes."""
import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from readme_generator.config import get_settings
from readme_generator.services.rate_limit import get_rate_limit_tracker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthStatus(BaseModel):
    """Health check response."""

    status: Literal["healthy", "degraded"]
    version: str
    github_rate_limit_remaining: int
    details: dict | None = None


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """
    Basic health check endpoint.

    Reports ``degraded`` when generation is not configured or the shared
    GitHub rate-limit budget is exhausted.
    """
    from readme_generator import __version__

    settings = get_settings()
    tracker = get_rate_limit_tracker()
    state = tracker.read()

    details = {}
    missing = settings.missing("generation") if settings.generation_backend == "anthropic" else []
    if missing:
        details["missing_settings"] = missing
    if state.is_exhausted(tracker.now()):
        details["github_rate_limited_until"] = state.reset_at.isoformat() if state.reset_at else None

    return HealthStatus(
        status="degraded" if details else "healthy",
        version=__version__,
        github_rate_limit_remaining=state.remaining,
        details=details or None,
    )


@router.get("/health/live")
async def liveness_check() -> dict:
    """
    Liveness check - minimal endpoint.

    Returns 200 if process is alive.
    """
    return {"alive": True}
