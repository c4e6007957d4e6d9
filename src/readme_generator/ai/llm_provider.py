"""LLM provider abstraction with an Anthropic Messages implementation.

The :class:`GenerationProxy` validates prompts, forwards them to a
provider as a single user turn and normalizes failures into a small
error taxonomy.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from readme_generator.ai.anchors import SlugPolicy, get_slug_policy, repair_toc_anchors
from readme_generator.config import get_settings
from readme_generator.core.errors import ErrorKind, InputValidationError, ReadmeGeneratorError
from readme_generator.core.redactor import get_redactor

logger = logging.getLogger(__name__)


class GenerationError(ReadmeGeneratorError):
    """Raised when the generation backend fails or returns nothing usable."""


_USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.AUTHENTICATION_FAILED: "Generation service authentication failed. Please contact the site owner.",
    ErrorKind.RATE_LIMITED: "The README generation service is busy. Please try again in a minute.",
    ErrorKind.BACKEND_UNAVAILABLE: "The README generation service is temporarily unavailable. Please try again.",
    ErrorKind.MALFORMED_REQUEST: "The README request was rejected. Try disabling some sections and retry.",
    ErrorKind.EMPTY_GENERATION: "No content generated. The service returned an empty response.",
}


def classify_backend_status(status_code: int) -> ErrorKind:
    if status_code in (401, 403):
        return ErrorKind.AUTHENTICATION_FAILED
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in (400, 404, 413, 422):
        return ErrorKind.MALFORMED_REQUEST
    return ErrorKind.BACKEND_UNAVAILABLE


def generation_error(kind: ErrorKind, *, status_code: int | None = None, raw: str | None = None) -> GenerationError:
    detail = get_redactor().redact_text(raw) if raw else None
    return GenerationError(_USER_MESSAGES[kind], kind=kind, status_code=status_code, detail=detail)


@dataclass
class GenerationResult:
    """Text produced by a provider plus the metadata it reported."""

    text: str | None
    model: str
    stop_reason: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)


class LLMProvider(Protocol):
    """Protocol for LLM providers. Used as an async context manager."""

    async def __aenter__(self) -> Any:
        ...

    async def __aexit__(self, *args: Any) -> None:
        ...

    async def generate(self, prompt: str, max_tokens: int = 4096) -> GenerationResult:
        """Generate text from prompt."""
        ...

    @property
    def model_name(self) -> str:
        """Get the model name."""
        ...


class AnthropicProvider:
    """
    Anthropic Messages API provider.

    Sends one user message per call; no conversation state is kept.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str = "https://api.anthropic.com",
        api_version: str = "2023-06-01",
        timeout_seconds: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Model identifier
            base_url: API base URL
            api_version: Value of the anthropic-version header
            timeout_seconds: Read timeout for generation requests
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AnthropicProvider":
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.api_version,
                "content-type": "application/json",
            },
            timeout=httpx.Timeout(self.timeout_seconds, connect=10.0),  # Long timeout for generation
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self.model

    async def generate(self, prompt: str, max_tokens: int = 4096) -> GenerationResult:
        """
        Generate text from prompt.

        Args:
            prompt: Input prompt
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text with usage metadata

        Raises:
            GenerationError: If the backend fails
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        logger.info(
            "Generating with Anthropic",
            extra={"model": self.model, "prompt_length": len(prompt)},
        )

        try:
            response = await self._client.post(
                "/v1/messages",
                json={
                    "model": self.model,
                    "max_tokens": max_tokens,
                    "messages": [{"role": "user", "content": prompt}],
                },
            )
        except httpx.TransportError as exc:
            logger.error("Failed to reach Anthropic API", extra={"error": type(exc).__name__})
            raise generation_error(ErrorKind.BACKEND_UNAVAILABLE) from exc

        if response.status_code >= 400:
            kind = classify_backend_status(response.status_code)
            error = generation_error(kind, status_code=response.status_code, raw=response.text)
            logger.error(
                "Anthropic API error",
                extra={
                    "status_code": response.status_code,
                    "kind": kind.value,
                    "detail": error.detail,
                },
            )
            raise error

        try:
            data = response.json()
        except ValueError as exc:
            raise generation_error(ErrorKind.BACKEND_UNAVAILABLE, raw=response.text) from exc

        blocks = data.get("content") if isinstance(data, dict) else None
        texts = [
            block.get("text", "")
            for block in blocks or []
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return GenerationResult(
            text="".join(texts) if texts else None,
            model=str(data.get("model") or self.model),
            stop_reason=data.get("stop_reason"),
            usage=data.get("usage") or {},
        )


class MockLLMProvider:
    """
    Mock LLM provider for testing.

    Returns predefined responses for testing purposes.
    """

    def __init__(self, responses: dict[str, str] | None = None, default_response: str | None = None):
        self.responses = responses or {}
        self.default_response = default_response if default_response is not None else (
            "# Project\n\n## Features\n\n- Generated locally by the mock provider\n"
        )
        self.calls: list[str] = []

    async def __aenter__(self) -> "MockLLMProvider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass

    @property
    def model_name(self) -> str:
        return "mock-model"

    async def generate(self, prompt: str, max_tokens: int = 4096) -> GenerationResult:
        self.calls.append(prompt)

        for key, response in self.responses.items():
            if key in prompt:
                return GenerationResult(text=response, model=self.model_name, stop_reason="end_turn")

        return GenerationResult(text=self.default_response, model=self.model_name, stop_reason="end_turn")


class GenerationProxy:
    """Validates prompts, calls the provider and post-processes the result."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        max_prompt_chars: int = 100_000,
        max_tokens: int = 4096,
        slug_policy: SlugPolicy | None = None,
    ):
        self.provider = provider
        self.max_prompt_chars = max_prompt_chars
        self.max_tokens = max_tokens
        self.slug_policy = slug_policy

    def validate_prompt(self, prompt: str) -> None:
        if not prompt or not prompt.strip():
            raise InputValidationError("Prompt is required")
        if len(prompt) > self.max_prompt_chars:
            raise InputValidationError(
                f"Prompt is too long ({len(prompt)} characters, limit {self.max_prompt_chars})"
            )

    async def generate(self, prompt: str, *, repair_anchors: bool = False) -> str:
        """
        Generate README markdown for ``prompt``.

        Args:
            prompt: Compiled prompt
            repair_anchors: Rewrite TOC links to platform anchors afterwards

        Returns:
            Generated markdown

        Raises:
            InputValidationError: If the prompt is empty or too long
            GenerationError: If the backend fails or returns no text
        """
        self.validate_prompt(prompt)

        result = await self.provider.generate(prompt, max_tokens=self.max_tokens)

        logger.info(
            "Generation complete",
            extra={
                "model": result.model,
                "stop_reason": result.stop_reason,
                "usage": result.usage,
                "response_length": len(result.text or ""),
            },
        )

        if not result.text or not result.text.strip():
            logger.error("Generation backend returned no text", extra={"model": result.model})
            raise generation_error(ErrorKind.EMPTY_GENERATION)

        if repair_anchors:
            return repair_toc_anchors(result.text, self.slug_policy)
        return result.text


def get_llm_provider() -> LLMProvider:
    """
    Get configured LLM provider.

    Returns:
        Configured LLM provider instance
    """
    settings = get_settings()

    if settings.generation_backend == "anthropic":
        return AnthropicProvider(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            api_version=settings.anthropic_version,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    elif settings.generation_backend == "mock":
        return MockLLMProvider()
    else:
        raise ValueError(f"Unknown generation backend: {settings.generation_backend}")


def get_generation_proxy(provider: LLMProvider) -> GenerationProxy:
    """Build a proxy around ``provider`` using configured limits."""
    settings = get_settings()
    return GenerationProxy(
        provider,
        max_prompt_chars=settings.max_prompt_chars,
        max_tokens=settings.generation_max_tokens,
        slug_policy=get_slug_policy(settings.anchor_slug_policy),
    )
