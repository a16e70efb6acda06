"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_admin_authenticator,
    get_commerce_client,
    get_credential_store,
    get_job_store,
    get_order_preparation_service,
    get_order_processor,
    get_provider_registry,
    get_rotation_engine,
    get_rotation_scheduler,
    get_secret_rotation_engine,
    get_token_client,
    get_user_token_issuer,
)
from .config import (
    SettingsDependency,
    get_api_prefix,
    get_app_settings,
    get_display_timezone,
)

__all__ = [
    "SettingsDependency",
    "get_admin_authenticator",
    "get_api_prefix",
    "get_app_settings",
    "get_commerce_client",
    "get_credential_store",
    "get_display_timezone",
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
