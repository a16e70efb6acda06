"""
Bearer-token dependencies guarding the order and job routes.
"""

from __future__ import annotations

import hmac
from typing import Annotated, Any, Optional

from fastapi import Depends, Header

from gateway.core.errors import Unauthorized
from gateway.dependencies import get_app_settings, get_credential_store

BEARER_PREFIX = "Bearer "


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


async def require_access_token(
    settings: Annotated[Any, Depends(get_app_settings)],
    credential_store: Annotated[Any, Depends(get_credential_store)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> str:
    """Accept only the commerce provider's current access token."""
    presented = bearer_token(authorization)
    if presented is None:
        raise Unauthorized("Missing bearer token")

    expected = credential_store.get(settings.commerce.provider)
    if not expected or not hmac.compare_digest(
        presented.encode("utf-8"), expected.encode("utf-8")
    ):
        raise Unauthorized("Invalid access token")
    return presented


AccessTokenDependency = Depends(require_access_token)

__all__ = ["AccessTokenDependency", "bearer_token", "require_access_token"]
