"""
Client-secret rotation, running on its own cycle next to access-token rotation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import httpx

from gateway.clients.token_endpoint import TokenEndpointClient
from gateway.core.errors import SecretRotationFailed, TokenRotationError
from gateway.models.providers import JSON_CONTENT_TYPE, ProviderConfig
from gateway.services.credential_store import Clock, CredentialStore, utcnow
from gateway.services.provider_registry import ProviderRegistry
from gateway.services.token_rotation import RotationEngine, lookup_field
from gateway.utils.templates import TemplateContext, render_template

logger = logging.getLogger(__name__)


def format_expiry(instant: datetime) -> str:
    """Render an instant as whole-second UTC, e.g. ``2026-01-01T00:00:00Z``."""
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class SecretRotationEngine:
    """Mint a new client secret and install it in the provider's config."""

    def __init__(
        self,
        registry: ProviderRegistry,
        credential_store: CredentialStore,
        rotation_engine: RotationEngine,
        token_client: TokenEndpointClient,
        clock: Clock = utcnow,
    ) -> None:
        self._registry = registry
        self._store = credential_store
        self._rotation = rotation_engine
        self._client = token_client
        self._clock = clock

    async def rotate_secret(self, provider_name: str) -> bool:
        provider = self._registry.get(provider_name)
        if not provider.secret_rotation.enabled:
            return True

        try:
            new_secret = await self._request_new_secret(provider)
        except TokenRotationError as exc:
            logger.error(
                "Secret rotation error for %s (%s): %s", provider.name, exc.code, exc.message
            )
            raise

        # Re-read so a concurrent replace of another field is not lost.
        current = self._registry.get(provider.name)
        self._registry.replace(current.with_client_secret(new_secret))
        logger.info("Client secret for %s rotated successfully", provider.name)
        return True

    async def _request_new_secret(self, provider: ProviderConfig) -> str:
        if not self._store.has_valid_access_token(provider.name):
            await self._rotation.rotate(provider.name)
        access_token = self._store.get(provider.name)
        if not access_token:
            raise SecretRotationFailed(
                f"Secret rotation failed for {provider.name}: no access token available"
            )

        config = provider.secret_rotation
        expires_at = format_expiry(
            self._clock() + timedelta(seconds=config.validity_seconds)
        )
        context = TemplateContext(
            client_id=provider.secret_client_id,
            client_secret=provider.secret_client_secret,
            display_name=config.display_name,
            expires_at=expires_at,
            application_id=config.application_id,
            extra=provider.extra_values,
        )
        headers = {
            "Authorization": f"Bearer {access_token}",
            config.application_id_header: config.application_id,
        }
        try:
            response = await self._client.send(
                method=config.method,
                url=render_template(config.url, context),
                content_type=JSON_CONTENT_TYPE,
                body=render_template(config.body_template, context),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise SecretRotationFailed(
                f"Secret rotation failed for {provider.name}: {type(exc).__name__}"
            ) from exc

        payload = response.payload or {}
        if not response.ok:
            upstream_code = payload.get("error")
            raise SecretRotationFailed(
                f"Secret rotation failed for {provider.name}",
                upstream_code=upstream_code if isinstance(upstream_code, str) else None,
                status=response.status_code,
            )

        new_secret = lookup_field(payload, config.response_field)
        if not new_secret or not isinstance(new_secret, str):
            raise SecretRotationFailed(
                f"Secret rotation failed for {provider.name}: response has no "
                f"{config.response_field!r} field"
            )
        return new_secret


__all__ = ["SecretRotationEngine", "format_expiry"]
