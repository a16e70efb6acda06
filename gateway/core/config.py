"""
Application configuration models and helpers.

Centralizes settings management so the HTTP layer, the rotation scheduler and
the order job processor share one configuration surface.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Optional

from pydantic import Field, TypeAdapter, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gateway.models.providers import ProviderConfig


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)

LEGACY_PROVIDER_NAME = "tdsynnex"

_PROVIDER_LIST = TypeAdapter(List[ProviderConfig])


class AdminSettings(BaseSettings):
    """Credentials gating issuance of user refresh tokens."""

    model_config = _SETTINGS_CONFIG

    user: str = Field(..., validation_alias="ADMIN_USER")
    password: str = Field(..., validation_alias="ADMIN_PASSWORD", repr=False)
    two_factor_secret: str = Field(
        ...,
        validation_alias="TWO_FACTOR_SECRET",
        repr=False,
        description="Base32 TOTP secret shared with the operator's authenticator.",
    )


class RotationSettings(BaseSettings):
    """Timers and lifetimes for the credential rotation engine."""

    model_config = _SETTINGS_CONFIG

    check_interval_seconds: float = Field(
        60.0, gt=0, validation_alias="ROTATION_CHECK_INTERVAL"
    )
    default_interval_seconds: int = Field(
        300,
        gt=0,
        validation_alias="EXTERNAL_TOKEN_ROTATION_INTERVAL",
        description="Rotation interval for providers that do not set their own.",
    )
    user_refresh_token_validity_seconds: int = Field(
        3600, gt=0, validation_alias="USER_REFRESH_TOKEN_VALIDITY"
    )
    http_timeout_seconds: float = Field(
        30.0, gt=0, validation_alias="HTTP_TIMEOUT_SECONDS"
    )


class ProviderSettings(BaseSettings):
    """Sources for the provider list."""

    model_config = _SETTINGS_CONFIG

    token_providers: Optional[str] = Field(
        None,
        validation_alias="TOKEN_PROVIDERS",
        description="JSON list of provider configurations.",
    )
    token_providers_file: Optional[Path] = Field(
        None, validation_alias="TOKEN_PROVIDERS_FILE"
    )
    legacy_token_url: Optional[str] = Field(None, validation_alias="TDS_URL")
    legacy_initial_token: Optional[str] = Field(
        None, validation_alias="TDS_INITIAL_TOKEN", repr=False
    )

    def load(self, default_interval_seconds: int) -> List[ProviderConfig]:
        """Parse and validate every configured provider."""
        raw = self._raw_providers()
        if raw is None:
            if not self.legacy_token_url:
                return []
            raw = [
                {
                    "name": LEGACY_PROVIDER_NAME,
                    "token_url": self.legacy_token_url,
                    "initial_refresh_token": self.legacy_initial_token or "",
                }
            ]
        if not isinstance(raw, list):
            raise ValueError("Provider configuration must be a JSON list.")
        for entry in raw:
            if isinstance(entry, dict):
                entry.setdefault("rotation_interval_seconds", default_interval_seconds)

        providers = _PROVIDER_LIST.validate_python(raw)
        names = [provider.name for provider in providers]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate provider names: {', '.join(duplicates)}")
        return providers

    def _raw_providers(self) -> Any:
        if self.token_providers:
            return json.loads(self.token_providers)
        if self.token_providers_file:
            return json.loads(self.token_providers_file.read_text(encoding="utf-8"))
        return None


class CommerceApiSettings(BaseSettings):
    """Location and conventions of the commerce API bridge."""

    model_config = _SETTINGS_CONFIG

    base_url: str = Field("http://localhost:8080", validation_alias="COMMERCE_API_BASE_URL")
    provider: str = Field(
        LEGACY_PROVIDER_NAME,
        validation_alias="COMMERCE_PROVIDER",
        description="Provider whose access token authenticates commerce calls.",
    )
    orders_path: str = Field("/getAllOrdersTDS", validation_alias="COMMERCE_ORDERS_PATH")
    products_path: str = Field("/getProductsTDS", validation_alias="COMMERCE_PRODUCTS_PATH")
    add_order_path: str = Field("/addOrderTDS", validation_alias="COMMERCE_ADD_ORDER_PATH")
    plan_suffix: str = Field("P1Y:Y", validation_alias="COMMERCE_PLAN_SUFFIX")
    product_language: str = Field("DE", validation_alias="COMMERCE_PRODUCT_LANGUAGE")

    @field_validator("provider")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return value.strip().lower()


class JobSettings(BaseSettings):
    model_config = _SETTINGS_CONFIG

    concurrency: int = Field(5, gt=0, validation_alias="CONCURRENCY")


class AppSettings(BaseSettings):
    """Root settings object for the gateway."""

    model_config = _SETTINGS_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    api_prefix: str = Field("/api", validation_alias="API_PREFIX")
    display_timezone: str = Field("Europe/Berlin", validation_alias="DISPLAY_TIMEZONE")
    host: str = Field("0.0.0.0", validation_alias="HOST")
    port: int = Field(3000, gt=0, validation_alias="PORT")
    admin: AdminSettings = Field(default_factory=AdminSettings)
    rotation: RotationSettings = Field(default_factory=RotationSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    commerce: CommerceApiSettings = Field(default_factory=CommerceApiSettings)
    jobs: JobSettings = Field(default_factory=JobSettings)

    @model_validator(mode="after")
    def _validate_providers(self) -> "AppSettings":
        # Surface template and format errors at load time, not at rotation time.
        names = [provider.name for provider in self.provider_configs()]
        if names and self.commerce.provider not in names:
            raise ValueError(
                f"COMMERCE_PROVIDER {self.commerce.provider!r} is not a configured provider "
                f"(configured: {', '.join(names)})"
            )
        return self

    def provider_configs(self) -> List[ProviderConfig]:
        return self.providers.load(self.rotation.default_interval_seconds)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AdminSettings",
    "AppSettings",
    "CommerceApiSettings",
    "JobSettings",
    "LEGACY_PROVIDER_NAME",
    "ProviderSettings",
    "RotationSettings",
    "get_settings",
]
