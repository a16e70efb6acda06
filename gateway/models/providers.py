"""
Static per-provider descriptions of the token and secret-rotation endpoints.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gateway.utils.templates import find_placeholders, validate_placeholders

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"

DEFAULT_TOKEN_BODY: Dict[str, str] = {
    "grant_type": "refresh_token",
    "refresh_token": "{refresh_token}",
}


class SecretRotationConfig(BaseModel):
    """How a provider's client secret is replaced on its own cycle."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    interval_seconds: int = Field(86400, gt=0)
    validity_seconds: int = Field(
        180 * 86400,
        gt=0,
        description="Lifetime requested for each newly minted secret.",
    )
    url: str = ""
    method: Literal["POST", "PUT", "PATCH"] = "POST"
    body_template: Any = Field(default_factory=dict)
    response_field: str = "secretText"
    display_name: str = "gateway-rotated"
    client_id: Optional[str] = None
    client_secret: Optional[str] = Field(None, repr=False)
    application_id: str = ""
    application_id_header: str = "X-Application-Id"

    @model_validator(mode="after")
    def _require_url_when_enabled(self) -> "SecretRotationConfig":
        if self.enabled and not self.url:
            raise ValueError("Secret rotation is enabled but no url is configured.")
        return self


class ProviderConfig(BaseModel):
    """Immutable description of one provider's token endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    token_url: str = Field(..., min_length=1)
    method: Literal["GET", "POST", "PUT", "PATCH"] = "POST"
    content_type: str = FORM_CONTENT_TYPE
    body_template: Any = Field(default_factory=lambda: dict(DEFAULT_TOKEN_BODY))
    access_token_field: str = "access_token"
    refresh_token_field: Optional[str] = "refresh_token"
    expires_in_field: Optional[str] = "expires_in"
    rotation_enabled: bool = True
    rotation_interval_seconds: int = Field(300, gt=0)
    headers: Dict[str, str] = Field(default_factory=dict)
    initial_refresh_token: str = Field("", repr=False)
    client_id: str = ""
    client_secret: str = Field("", repr=False)
    extra_values: Dict[str, str] = Field(default_factory=dict, repr=False)
    secret_rotation: SecretRotationConfig = Field(default_factory=SecretRotationConfig)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _check_templates(self) -> "ProviderConfig":
        extra_names = self.extra_values.keys()
        validate_placeholders(self.token_url, extra_names)
        validate_placeholders(self.body_template, extra_names)
        validate_placeholders(self.headers, extra_names)
        validate_placeholders(self.secret_rotation.url, extra_names)
        validate_placeholders(self.secret_rotation.body_template, extra_names)
        if self.content_type.startswith(FORM_CONTENT_TYPE) and not _is_flat_mapping(
            self.body_template
        ):
            raise ValueError(
                f"Provider {self.name!r} uses a form body; body_template must be a "
                "flat mapping of strings."
            )
        return self

    @property
    def uses_refresh_token(self) -> bool:
        """Whether the token request needs the external refresh token."""
        return "refresh_token" in (
            find_placeholders(self.body_template)
            | find_placeholders(self.token_url)
            | find_placeholders(self.headers)
        )

    @property
    def secret_client_id(self) -> str:
        return self.secret_rotation.client_id or self.client_id

    @property
    def secret_client_secret(self) -> str:
        return self.secret_rotation.client_secret or self.client_secret

    def with_client_secret(self, secret: str) -> "ProviderConfig":
        """Return a copy that authenticates with ``secret`` from now on."""
        rotation = self.secret_rotation.model_copy(update={"client_secret": secret})
        return self.model_copy(
            update={"client_secret": secret, "secret_rotation": rotation}
        )


def _is_flat_mapping(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    return all(isinstance(item, (str, int, float, bool)) for item in value.values())


__all__ = [
    "DEFAULT_TOKEN_BODY",
    "FORM_CONTENT_TYPE",
    "JSON_CONTENT_TYPE",
    "ProviderConfig",
    "SecretRotationConfig",
]
