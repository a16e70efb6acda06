"""
Internally issued tokens that gate who may trigger a provider rotation.
"""

from __future__ import annotations

import hmac
import secrets
from datetime import timedelta
from enum import Enum
from typing import Optional

from gateway.services.credential_store import Clock, CredentialStore, utcnow

# 32 random bytes, i.e. 256 bits of entropy.
TOKEN_BYTES = 32


class UserTokenVerdict(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    NOT_ISSUED = "not_issued"

    @property
    def is_valid(self) -> bool:
        return self is UserTokenVerdict.VALID


class UserRefreshTokenIssuer:
    """Issue and check the short-lived user refresh token of each provider."""

    def __init__(
        self,
        credential_store: CredentialStore,
        validity: timedelta = timedelta(hours=1),
        clock: Clock = utcnow,
    ) -> None:
        self._store = credential_store
        self._validity = validity
        self._clock = clock

    def issue(self, provider: str) -> str:
        """Generate a fresh token, replacing any previous one for ``provider``."""
        token = secrets.token_urlsafe(TOKEN_BYTES)
        self._store.update(
            provider,
            user_refresh_token=token,
            user_refresh_token_created_at=self._clock(),
            user_refresh_token_validity=self._validity,
        )
        return token

    def verify(self, provider: str, presented: Optional[str]) -> UserTokenVerdict:
        record = self._store.record(provider)
        if record is None or not record.user_refresh_token:
            return UserTokenVerdict.NOT_ISSUED
        if not presented or not hmac.compare_digest(
            presented.encode("utf-8"), record.user_refresh_token.encode("utf-8")
        ):
            return UserTokenVerdict.MISMATCH
        expires_at = record.user_refresh_token_expires_at
        if expires_at is None or self._clock() > expires_at:
            return UserTokenVerdict.EXPIRED
        return UserTokenVerdict.VALID


__all__ = ["TOKEN_BYTES", "UserRefreshTokenIssuer", "UserTokenVerdict"]
