"""Schemas related to token issuance and rotation."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InitialTokenRequest(BaseModel):
    """Body sent by an administrator to obtain a user refresh token."""

    model_config = ConfigDict(populate_by_name=True)

    two_factor_code: Optional[str] = Field(
        None,
        alias="twoFactorCode",
        description="Current TOTP code for the configured admin secret.",
    )


class UserRefreshTokenResponse(BaseModel):
    success: bool = True
    user_refresh_token: str
    user_refresh_token_expires_at: str
    message: str = (
        "User refresh token generated. Use this as Bearer token for subsequent "
        "token rotation requests."
    )


class TokenRotationResponse(BaseModel):
    success: bool = True
    access_token: str
    user_refresh_token: str
    user_refresh_token_expires_at: str
    expires_in: int = Field(..., description="Seconds until the next scheduled rotation.")
    next_rotation: str


__all__ = [
    "InitialTokenRequest",
    "TokenRotationResponse",
    "UserRefreshTokenResponse",
]
