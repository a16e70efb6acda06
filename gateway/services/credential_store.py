"""
In-memory table of per-provider token state.

Each provider's ``TokenRecord`` is immutable; writers build a new record and
swap it in under a lock, so a reader always sees a complete snapshot.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from gateway.models.providers import ProviderConfig
from gateway.models.tokens import TokenRecord

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore:
    """Own the current credentials of every configured provider."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._records: Dict[str, TokenRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock

    @classmethod
    def from_providers(
        cls, providers: Iterable[ProviderConfig], clock: Clock = utcnow
    ) -> "CredentialStore":
        """Create empty records seeded with each provider's initial refresh token."""
        store = cls(clock=clock)
        for provider in providers:
            store.set(provider.name, TokenRecord(refresh_token=provider.initial_refresh_token))
        return store

    def providers(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def __contains__(self, provider: str) -> bool:
        return provider in self._records

    def record(self, provider: str) -> Optional[TokenRecord]:
        return self._records.get(provider)

    def get(self, provider: str) -> Optional[str]:
        """Return the current access token, or ``None`` when absent."""
        record = self._records.get(provider)
        if record is None or not record.access_token:
            return None
        return record.access_token

    def set(self, provider: str, record: TokenRecord) -> None:
        with self._lock:
            self._records[provider] = record

    def update(self, provider: str, **changes: Any) -> TokenRecord:
        """Replace the provider's record with a copy carrying ``changes``."""
        with self._lock:
            current = self._records.get(provider, TokenRecord())
            updated = replace(current, **changes)
            self._records[provider] = updated
        return updated

    def age_since_rotation(self, provider: str) -> timedelta:
        """Time since the last successful rotation; unbounded when never rotated."""
        record = self._records.get(provider)
        if record is None or record.last_rotated_at is None:
            return timedelta.max
        return self._clock() - record.last_rotated_at

    def has_valid_access_token(self, provider: str) -> bool:
        record = self._records.get(provider)
        if record is None or not record.access_token:
            return False
        if record.access_token_expires_at is None:
            return True
        return self._clock() < record.access_token_expires_at


__all__ = ["Clock", "CredentialStore", "utcnow"]
