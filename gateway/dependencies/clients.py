"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from datetime import timedelta
from functools import lru_cache

from gateway.clients import CommerceApiClient, TokenEndpointClient
from gateway.core.config import get_settings
from gateway.services import (
    AdminAuthenticator,
    CredentialStore,
    JobStore,
    OrderJobProcessor,
    OrderPreparationService,
    ProviderRegistry,
    RotationEngine,
    RotationScheduler,
    SecretRotationEngine,
    UserRefreshTokenIssuer,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_provider_registry() -> ProviderRegistry:
    """Provide the registry of configured token providers."""
    return ProviderRegistry(_settings().provider_configs())


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the process-wide credential store seeded from provider configs."""
    return CredentialStore.from_providers(get_provider_registry())


@lru_cache()
def get_token_client() -> TokenEndpointClient:
    settings = _settings()
    return TokenEndpointClient(timeout=settings.rotation.http_timeout_seconds)


@lru_cache()
def get_rotation_engine() -> RotationEngine:
    """Provide the access token rotation engine."""
    return RotationEngine(
        registry=get_provider_registry(),
        credential_store=get_credential_store(),
        token_client=get_token_client(),
    )


@lru_cache()
def get_secret_rotation_engine() -> SecretRotationEngine:
    """Provide the client secret rotation engine."""
    return SecretRotationEngine(
        registry=get_provider_registry(),
        credential_store=get_credential_store(),
        rotation_engine=get_rotation_engine(),
        token_client=get_token_client(),
    )


@lru_cache()
def get_user_token_issuer() -> UserRefreshTokenIssuer:
    settings = _settings()
    return UserRefreshTokenIssuer(
        get_credential_store(),
        validity=timedelta(seconds=settings.rotation.user_refresh_token_validity_seconds),
    )


@lru_cache()
def get_rotation_scheduler() -> RotationScheduler:
    """Provide the timers driving automatic rotation."""
    settings = _settings()
    return RotationScheduler(
        get_provider_registry(),
        get_credential_store(),
        get_rotation_engine(),
        get_secret_rotation_engine(),
        check_interval_seconds=settings.rotation.check_interval_seconds,
    )


@lru_cache()
def get_admin_authenticator() -> AdminAuthenticator:
    """Provide the Basic auth plus TOTP gate for initial token issuance."""
    return AdminAuthenticator(_settings().admin)


@lru_cache()
def get_commerce_client() -> CommerceApiClient:
    """Provide the commerce API client authenticated by the rotated access token."""
    settings = _settings()
    return CommerceApiClient(
        settings.commerce,
        get_credential_store(),
        timeout=settings.rotation.http_timeout_seconds,
    )


@lru_cache()
def get_job_store() -> JobStore:
    """Provide the process-local job table."""
    return JobStore()


@lru_cache()
def get_order_processor() -> OrderJobProcessor:
    """Provide the bounded-concurrency order job processor."""
    settings = _settings()
    return OrderJobProcessor(
        get_commerce_client(),
        get_job_store(),
        concurrency=settings.jobs.concurrency,
    )


def get_order_preparation_service() -> OrderPreparationService:
    """Build an order preparation service using the commerce client."""
    return OrderPreparationService(
        get_commerce_client(),
        plan_suffix=_settings().commerce.plan_suffix,
    )


__all__ = [
    "get_admin_authenticator",
    "get_commerce_client",
    "get_credential_store",
    "get_job_store",
    "get_order_preparation_service",
    "get_order_processor",
    "get_provider_registry",
    "get_rotation_engine",
    "get_rotation_scheduler",
    "get_secret_rotation_engine",
    "get_token_client",
    "get_user_token_issuer",
]
