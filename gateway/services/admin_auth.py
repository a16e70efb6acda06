"""
Admin gate in front of user refresh token issuance: Basic auth plus TOTP.
"""

from __future__ import annotations

import base64
import binascii
import hmac
from typing import Optional, Tuple

import pyotp

from gateway.core.config import AdminSettings
from gateway.core.errors import InvalidCredentials, TwoFactorCodeMissing, Unauthorized


def parse_basic_credentials(header: Optional[str]) -> Tuple[str, str]:
    """Decode ``Authorization: Basic ...`` into ``(username, password)``."""
    if not header or not header.startswith("Basic "):
        raise Unauthorized("No credentials supplied")
    try:
        decoded = base64.b64decode(header[len("Basic "):].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise Unauthorized("Malformed Basic credentials") from exc
    username, _, password = decoded.partition(":")
    return username, password


class AdminAuthenticator:
    """Check admin credentials and the current one-time code."""

    def __init__(self, settings: AdminSettings, *, valid_window: int = 1) -> None:
        self._settings = settings
        self._totp = pyotp.TOTP(settings.two_factor_secret)
        self._valid_window = valid_window

    def verify(self, authorization: Optional[str], two_factor_code: Optional[str]) -> None:
        username, password = parse_basic_credentials(authorization)
        user_ok = hmac.compare_digest(username.encode("utf-8"), self._settings.user.encode("utf-8"))
        password_ok = hmac.compare_digest(
            password.encode("utf-8"), self._settings.password.encode("utf-8")
        )
        if not (user_ok and password_ok):
            raise InvalidCredentials("Invalid credentials")

        if not two_factor_code:
            raise TwoFactorCodeMissing("Two-factor code missing")
        if not self._totp.verify(two_factor_code, valid_window=self._valid_window):
            raise Unauthorized("Invalid two-factor code", code="INVALID_TWO_FACTOR_CODE")


__all__ = ["AdminAuthenticator", "parse_basic_credentials"]
