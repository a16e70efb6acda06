"""
Access-token rotation against a provider's token endpoint.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping, Optional

import httpx

from gateway.clients.token_endpoint import TokenEndpointClient
from gateway.core.errors import (
    InitialTokenExpired,
    InvalidTokenResponse,
    TokenRotationError,
    TokenRotationFailed,
)
from gateway.models.providers import ProviderConfig
from gateway.models.tokens import EXPIRED_REFRESH_TOKEN, TokenRecord
from gateway.services.credential_store import Clock, CredentialStore, utcnow
from gateway.services.provider_registry import ProviderRegistry
from gateway.utils.templates import TemplateContext, render_template

logger = logging.getLogger(__name__)


def lookup_field(payload: Mapping[str, Any], path: Optional[str]) -> Any:
    """Read a possibly dotted field (``data.access_token``) from a JSON payload."""
    if not path:
        return None
    current: Any = payload
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


class RotationEngine:
    """Exchange a provider's refresh token for a new access token."""

    def __init__(
        self,
        registry: ProviderRegistry,
        credential_store: CredentialStore,
        token_client: TokenEndpointClient,
        clock: Clock = utcnow,
    ) -> None:
        self._registry = registry
        self._store = credential_store
        self._client = token_client
        self._clock = clock

    async def rotate(self, provider_name: str) -> bool:
        """Rotate one provider's access token.

        Returns ``True`` on success or when rotation is disabled for the
        provider. Every failure raises a ``TokenRotationError`` subclass.
        """
        provider = self._registry.get(provider_name)
        if not provider.rotation_enabled:
            logger.debug("Rotation disabled for %s; skipping", provider.name)
            return True

        try:
            await self._rotate(provider)
        except TokenRotationError as exc:
            logger.error(
                "Token rotation error for %s (%s): %s", provider.name, exc.code, exc.message
            )
            if isinstance(exc, InitialTokenExpired):
                self._store.update(provider.name, refresh_token=EXPIRED_REFRESH_TOKEN)
            raise

        logger.info("Token %s rotated successfully", provider.name)
        return True

    async def _rotate(self, provider: ProviderConfig) -> None:
        record = self._store.record(provider.name) or TokenRecord()
        if record.refresh_token_expired or (
            provider.uses_refresh_token and not record.refresh_token
        ):
            raise InitialTokenExpired("Initial token has expired or is invalid")

        context = TemplateContext(
            refresh_token=record.refresh_token,
            client_id=provider.client_id,
            client_secret=provider.client_secret,
            application_id=provider.secret_rotation.application_id,
            extra=provider.extra_values,
        )
        try:
            response = await self._client.send(
                method=provider.method,
                url=render_template(provider.token_url, context),
                content_type=provider.content_type,
                body=render_template(provider.body_template, context),
                headers=render_template(provider.headers, context),
            )
        except httpx.HTTPError as exc:
            raise TokenRotationFailed(
                f"Token endpoint for {provider.name} is unreachable: {type(exc).__name__}"
            ) from exc

        payload = response.payload or {}
        if not response.ok:
            upstream_code = payload.get("error")
            raise TokenRotationFailed(
                payload.get("error_description") or "Token rotation failed",
                upstream_code=upstream_code if isinstance(upstream_code, str) else None,
                status=response.status_code,
            )

        access_token = lookup_field(payload, provider.access_token_field)
        if not access_token or not isinstance(access_token, str):
            raise InvalidTokenResponse("Invalid token response from server")

        new_refresh_token = lookup_field(payload, provider.refresh_token_field)
        now = self._clock()
        self._store.update(
            provider.name,
            access_token=access_token,
            refresh_token=new_refresh_token
            if isinstance(new_refresh_token, str) and new_refresh_token
            else record.refresh_token,
            last_rotated_at=now,
            access_token_expires_at=_expiry(now, lookup_field(payload, provider.expires_in_field)),
        )


def _expiry(now, expires_in: Any):
    try:
        seconds = int(expires_in)
        if seconds < 0:
            return None
        return now + timedelta(seconds=seconds)
    except (TypeError, ValueError, OverflowError):
        return None


__all__ = ["RotationEngine", "lookup_field"]
