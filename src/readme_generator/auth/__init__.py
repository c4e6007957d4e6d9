"""Authentication helpers for the GitHub OAuth flow."""

from readme_generator.auth.oauth_providers import GitHubOAuthProvider, OAuthError, OAuthUserInfo

__all__ = ["GitHubOAuthProvider", "OAuthError", "OAuthUserInfo"]
