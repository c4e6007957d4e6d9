from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

MAX_REDACTED_LENGTH = 500

# (pattern, replacement) pairs for credentials that appear in GitHub and Anthropic payloads.
_SECRET_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"ghp_[A-Za-z0-9]{36,}", "[REDACTED_TOKEN]"),
    (r"gho_[A-Za-z0-9]{36,}", "[REDACTED_TOKEN]"),
    (r"ghu_[A-Za-z0-9]{36,}", "[REDACTED_TOKEN]"),
    (r"ghs_[A-Za-z0-9]{36,}", "[REDACTED_TOKEN]"),
    (r"github_pat_[A-Za-z0-9_]{22,}", "[REDACTED_TOKEN]"),
    (r"sk-ant-[A-Za-z0-9_\-]{16,}", "[REDACTED_KEY]"),
    (r"(?i)bearer\s+[A-Za-z0-9\-_.=]+", "Bearer [REDACTED]"),
    (r'"sha":\s*"[a-f0-9]{40}"', '"sha": "[REDACTED]"'),
    (r"\b[0-9a-f]{40}\b", "[REDACTED_SHA]"),
)


@dataclass(frozen=True)
class Redactor:
    patterns: list[tuple[re.Pattern[str], str]]
    url_token_pattern: re.Pattern[str]
    header_token_pattern: re.Pattern[str]
    max_length: int = MAX_REDACTED_LENGTH

    def redact_text(self, value: str | None) -> str:
        if not value:
            return "Unknown error"
        redacted = value
        for pat, replacement in self.patterns:
            redacted = pat.sub(replacement, redacted)
        redacted = self.url_token_pattern.sub(r"\1=[REDACTED]", redacted)
        redacted = self.header_token_pattern.sub(r"\1: [REDACTED]", redacted)
        return redacted[: self.max_length]


@lru_cache(maxsize=1)
def get_redactor() -> Redactor:
    patterns = [(re.compile(p), replacement) for p, replacement in _SECRET_PATTERNS]
    url_token_pattern = re.compile(
        r"(?i)\b(access_token|client_secret|token|code|signature|sig|key)=([^&\s\"]+)"
    )
    header_token_pattern = re.compile(
        r"(?i)\b(x-api-key|x-auth-token)\"?:\s*\"?([^\s\",]+)"
    )
    return Redactor(
        patterns=patterns,
        url_token_pattern=url_token_pattern,
        header_token_pattern=header_token_pattern,
    )
