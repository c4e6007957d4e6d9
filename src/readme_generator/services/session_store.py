"""Encrypted session cookies.

The session holds the user's GitHub token, so the cookie value is
sealed with AES-256-GCM. The key is the SHA-256 digest of AUTH_SECRET
and the wire format is ``<iv hex>:<auth tag hex>:<ciphertext hex>``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from readme_generator.config import get_settings
from readme_generator.core.errors import AuthRequiredError, SessionExpiredError

logger = logging.getLogger(__name__)

IV_BYTES = 16
TAG_BYTES = 16


class SessionDecodeError(ValueError):
    """Raised when a cookie value cannot be decrypted or parsed."""


@dataclass(frozen=True)
class SessionUser:
    """Public profile of the signed-in GitHub user."""

    id: int | None
    login: str
    name: str | None = None
    avatar: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class Session:
    """Decrypted session payload."""

    token: str
    user: SessionUser
    created_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "user": asdict(self.user),
            "createdAt": int(self.created_at.timestamp() * 1000),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> Session:
        if not isinstance(payload, dict):
            raise SessionDecodeError("Session payload is not an object")
        token = payload.get("token")
        user = payload.get("user")
        created = payload.get("createdAt")
        if not isinstance(token, str) or not token:
            raise SessionDecodeError("Session has no token")
        if not isinstance(user, dict) or not user.get("login"):
            raise SessionDecodeError("Session has no user")
        if not isinstance(created, (int, float)):
            raise SessionDecodeError("Session has no creation time")
        return cls(
            token=token,
            user=SessionUser(
                id=user.get("id"),
                login=str(user["login"]),
                name=user.get("name"),
                avatar=user.get("avatar"),
                email=user.get("email"),
            ),
            created_at=datetime.fromtimestamp(created / 1000, tz=UTC),
        )


class SessionStatus(str, Enum):
    MISSING = "missing"
    INVALID = "invalid"
    EXPIRED = "expired"
    VALID = "valid"


@dataclass(frozen=True)
class SessionLookup:
    """Result of reading a session cookie."""

    status: SessionStatus
    session: Session | None = None

    @property
    def is_valid(self) -> bool:
        return self.status == SessionStatus.VALID


class SessionStore:
    """
    Seals and opens session cookie values.

    Nothing is kept server side; the cookie is the session.
    """

    def __init__(
        self,
        secret: str,
        *,
        max_age: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] | None = None,
    ):
        if not secret:
            raise ValueError("Session secret must not be empty")
        self._aead = AESGCM(hashlib.sha256(secret.encode("utf-8")).digest())
        self.max_age = max_age
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        return self._clock()

    def encrypt(self, text: str) -> str:
        iv = os.urandom(IV_BYTES)
        sealed = self._aead.encrypt(iv, text.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, value: str) -> str:
        parts = value.split(":")
        if len(parts) != 3 or not all(parts):
            raise SessionDecodeError("Malformed session value")
        try:
            iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        except ValueError as exc:
            raise SessionDecodeError("Session value is not hex encoded") from exc
        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
            raise SessionDecodeError("Malformed session value")
        try:
            plain = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            raise SessionDecodeError("Session could not be authenticated") from exc
        return plain.decode("utf-8", errors="replace")

    def seal(self, session: Session) -> str:
        return self.encrypt(json.dumps(session.to_payload(), separators=(",", ":")))

    def new_session(self, token: str, user: SessionUser) -> Session:
        return Session(token=token, user=user, created_at=self.now())

    def open(self, value: str | None) -> SessionLookup:
        """Decrypt ``value`` and classify it. Never raises."""
        if not value:
            return SessionLookup(SessionStatus.MISSING)
        try:
            session = Session.from_payload(json.loads(self.decrypt(value)))
        except (SessionDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Discarding unreadable session cookie", extra={"error": str(exc)})
            return SessionLookup(SessionStatus.INVALID)

        if self.now() - session.created_at > self.max_age:
            logger.info("Session expired", extra={"login": session.user.login})
            return SessionLookup(SessionStatus.EXPIRED, session)
        return SessionLookup(SessionStatus.VALID, session)

    def require_session(self, value: str | None) -> Session:
        """
        Return the session stored in ``value``.

        Raises:
            AuthRequiredError: If there is no session cookie
            SessionExpiredError: If the session is older than ``max_age``
                or can no longer be decrypted
        """
        lookup = self.open(value)
        if lookup.status in (SessionStatus.EXPIRED, SessionStatus.INVALID):
            raise SessionExpiredError()
        if not lookup.is_valid or lookup.session is None:
            raise AuthRequiredError()
        return lookup.session


def get_session_store() -> SessionStore:
    """Build a session store from configured settings."""
    settings = get_settings()
    return SessionStore(
        settings.auth_secret,
        max_age=timedelta(days=settings.session_max_age_days),
    )
