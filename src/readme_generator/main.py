"""FastAPI application entry point.

This is the main application module that configures and starts
the README Generator API server.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from readme_generator import __version__
from readme_generator.api.auth import router as auth_router
from readme_generator.api.health import router as health_router
from readme_generator.api.readme import router as readme_router
from readme_generator.api.repositories import router as repositories_router
from readme_generator.config import REQUIRED_SETTINGS, get_settings
from readme_generator.core.errors import ErrorKind, ReadmeGeneratorError
from readme_generator.core.logging import new_request_id, request_id_ctx, setup_logging

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTH_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.SESSION_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.SERVER_UNAVAILABLE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.NETWORK_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.EMPTY_GENERATION: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.AUTHENTICATION_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.UNEXPECTED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.BACKEND_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.MALFORMED_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.REMOTE_CONFLICT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFIGURATION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_body(exc: ReadmeGeneratorError) -> dict:
    """Serialize an error for API clients."""
    body: dict = {
        "error": exc.message,
        "code": exc.kind.value,
        "request_id": request_id_ctx.get(),
    }
    if exc.detail:
        body["detail"] = exc.detail
    if exc.requires_reauthentication:
        body["action"] = "reauthenticate"
    operation = getattr(exc, "operation", None)
    if operation:
        body["step"] = operation
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    setup_logging()
    settings = get_settings()
    logger.info(
        "README Generator starting",
        extra={
            "version": __version__,
            "environment": settings.environment,
            "generation_backend": settings.generation_backend,
        },
    )

    for feature in REQUIRED_SETTINGS:
        missing = settings.missing(feature)
        if missing:
            logger.warning(
                "Feature not configured",
                extra={"feature": feature, "missing": missing},
            )

    yield

    # Shutdown
    logger.info("README Generator shutting down")


def create_app() -> FastAPI:
    """
    Application factory for creating the FastAPI app.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title="README Generator",
        description="Generate README files for GitHub repositories and open them as pull requests",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if not settings.is_production else [settings.public_base_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # Exception handlers
    @app.exception_handler(ReadmeGeneratorError)
    async def readme_generator_exception_handler(
        request: Request,
        exc: ReadmeGeneratorError,
    ) -> JSONResponse:
        """Translate domain errors into JSON error responses."""
        status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "kind": exc.kind.value,
                "status_code": status_code,
                "upstream_status": exc.status_code,
            },
        )
        return JSONResponse(status_code=status_code, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Handle Pydantic validation errors."""
        logger.warning(
            "Request validation failed",
            extra={"errors": exc.errors(), "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "Invalid request",
                "code": ErrorKind.VALIDATION_ERROR.value,
                "detail": jsonable_encoder(exc.errors()),
                "request_id": request_id_ctx.get(),
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(repositories_router, prefix=settings.api_prefix)
    app.include_router(readme_router, prefix=settings.api_prefix)

    # Root endpoint
    @app.get("/")
    async def root() -> dict:
        """Root endpoint with API info."""
        return {
            "name": "README Generator",
            "version": __version__,
            "docs": "/docs" if not settings.is_production else None,
        }

    return app


# Create the application instance
app = create_app()
