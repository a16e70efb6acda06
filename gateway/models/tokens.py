"""
In-memory token state for a provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

EXPIRED_REFRESH_TOKEN = "expired"


@dataclass(frozen=True)
class TokenRecord:
    """Snapshot of one provider's credentials. Replaced whole, never patched."""

    access_token: str = field(default="", repr=False)
    refresh_token: str = field(default="", repr=False)
    last_rotated_at: Optional[datetime] = None
    access_token_expires_at: Optional[datetime] = None
    user_refresh_token: Optional[str] = field(default=None, repr=False)
    user_refresh_token_created_at: Optional[datetime] = None
    user_refresh_token_validity: timedelta = timedelta(hours=1)

    @property
    def refresh_token_expired(self) -> bool:
        return self.refresh_token == EXPIRED_REFRESH_TOKEN

    @property
    def user_refresh_token_expires_at(self) -> Optional[datetime]:
        if self.user_refresh_token_created_at is None:
            return None
        return self.user_refresh_token_created_at + self.user_refresh_token_validity


__all__ = ["EXPIRED_REFRESH_TOKEN", "TokenRecord"]
