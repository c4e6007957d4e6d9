"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Settings each entry point cannot run without.
REQUIRED_SETTINGS: dict[str, tuple[str, ...]] = {
    "generation": ("anthropic_api_key",),
    "oauth_login": ("github_client_id",),
    "oauth_callback": ("github_client_id", "github_client_secret", "auth_secret"),
    "session": ("auth_secret",),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "staging", "prod"] = "dev"
    debug: bool = False

    # API Configuration
    api_prefix: str = "/api/v1"
    public_base_url: str = "http://localhost:8000"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"

    # GitHub API
    github_api_base_url: str = "https://api.github.com"
    github_token: str = ""
    github_timeout_seconds: float = 30.0
    github_max_retries: int = 2
    github_retry_backoff_seconds: float = 1.0

    # Generation backend
    generation_backend: Literal["anthropic", "mock"] = "anthropic"
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_version: str = "2023-06-01"
    generation_max_tokens: int = 4096
    generation_timeout_seconds: float = 120.0
    max_prompt_chars: int = 100_000
    anchor_slug_policy: Literal["github", "naive"] = "github"

    # GitHub OAuth
    github_client_id: str = ""
    github_client_secret: str = ""
    github_oauth_scope: str = "repo read:user user:email"

    # Session cookie
    auth_secret: str = Field(default="", repr=False)
    session_cookie_name: str = "session"
    oauth_state_cookie_name: str = "oauth_state"
    session_max_age_days: int = 30
    oauth_state_ttl_seconds: int = 600
    cookie_secure: bool = True

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "prod"

    @property
    def oauth_redirect_uri(self) -> str:
        """Callback URL registered with the GitHub OAuth app."""
        return f"{self.public_base_url.rstrip('/')}{self.api_prefix}/auth/callback"

    def missing(self, feature: str) -> list[str]:
        """Return the names of required settings that are unset for ``feature``."""
        return [
            name.upper()
            for name in REQUIRED_SETTINGS.get(feature, ())
            if not str(getattr(self, name, "") or "").strip()
        ]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
