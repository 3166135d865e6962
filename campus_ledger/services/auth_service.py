"""Session token issuance and validation behind the credential validator seam."""

from __future__ import annotations

import secrets
from datetime import timedelta
from threading import RLock
from typing import Optional, Protocol

from campus_ledger.domain.access import Identity, Role
from campus_ledger.domain.errors import AuthRejectedError
from campus_ledger.domain.validation import require_text
from campus_ledger.utils.clock import Clock, utc_now
from campus_ledger.utils.config import Settings, get_settings
from campus_ledger.utils.logger import get_logger


logger = get_logger(__name__)


class CredentialValidator(Protocol):
    """Turns a bearer credential into a validated identity or raises AuthRejectedError."""

    def validate(self, credential: str) -> Identity:
        ...


class AdminTokenNotConfiguredError(AuthRejectedError):
    """Raised when ADMIN_TOKEN is missing."""


class AuthService:
    """Issues opaque session tokens after an operator login and validates them."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock or utc_now
        self._sessions: dict[str, Identity] = {}
        self._lock = RLock()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_token(self) -> str:
        if not self._settings.admin_token:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured. Set ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(
        self,
        provided_admin_token: str,
        *,
        subject_id: str,
        role: str,
        tenant_id: str,
    ) -> tuple[str, Identity]:
        """Mint a session for ``subject_id`` acting as ``role`` within ``tenant_id``."""
        expected = self._expected_token()
        if not secrets.compare_digest(provided_admin_token, expected):
            raise AuthRejectedError("Invalid admin token")

        identity = Identity(
            subject_id=require_text(subject_id, "subject_id", max_length=64),
            role=Role.parse(role),
            tenant_id=require_text(tenant_id, "tenant_id", max_length=64),
            expires_at=self._clock() + timedelta(seconds=self._settings.session_ttl_seconds),
        )
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._purge_expired()
            self._sessions[token] = identity
        logger.info(
            "Session issued for %s (%s) in tenant %s",
            identity.subject_id,
            identity.role.value,
            identity.tenant_id,
        )
        return token, identity

    def validate(self, credential: str) -> Identity:
        if not credential:
            raise AuthRejectedError("No token provided")
        with self._lock:
            identity = None
            for token, candidate in self._sessions.items():
                if secrets.compare_digest(token, credential):
                    identity = candidate
                    break
        if identity is None:
            raise AuthRejectedError("Invalid bearer token")
        if identity.is_expired(self._clock()):
            with self._lock:
                self._sessions.pop(credential, None)
            raise AuthRejectedError("Session expired. Login again.")
        return identity

    def logout(self, credential: str) -> None:
        with self._lock:
            self._sessions.pop(credential, None)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [token for token, identity in self._sessions.items() if identity.is_expired(now)]
        for token in expired:
            del self._sessions[token]
