"""
Error taxonomy shared by the rotation engines, job processor and HTTP layer.

Every error carries a stable machine-readable ``code`` and the HTTP status it
maps to when it reaches a caller. Per-item order failures are recorded on the
job instead of being raised, so only their codes are defined here.
"""

from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for errors surfaced as ``{error, code, timestamp}`` bodies."""

    code = "UNKNOWN_ERROR"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, code: Optional[str] = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.extra: Dict[str, Any] = extra

    def to_payload(self) -> Dict[str, Any]:
        extra = dict(self.extra)
        solution = getattr(self, "solution", None)
        if solution:
            extra.setdefault("solution", solution)
        return error_payload(self.message, self.code, **extra)


class InvalidTokenName(GatewayError):
    """Raised when a route names a provider that is not configured."""

    code = "INVALID_TOKEN_NAME"
    status_code = HTTPStatus.BAD_REQUEST


class Unauthorized(GatewayError):
    code = "UNAUTHORIZED"
    status_code = HTTPStatus.UNAUTHORIZED


class InvalidCredentials(GatewayError):
    code = "INVALID_CREDENTIALS"
    status_code = HTTPStatus.FORBIDDEN


class TwoFactorCodeMissing(GatewayError):
    code = "TWO_FACTOR_CODE_MISSING"
    status_code = HTTPStatus.BAD_REQUEST


class TokenRotationError(GatewayError):
    """Base class for failures of a credential rotation exchange."""

    code = "TOKEN_ROTATION_ERROR"


class InitialTokenExpired(TokenRotationError):
    """The external refresh token is burned; an operator must supply a new one."""

    code = "INITIAL_TOKEN_EXPIRED"
    status_code = HTTPStatus.UNAUTHORIZED
    solution = "Renew initial token in environment variables"


class TokenRotationFailed(TokenRotationError):
    """The upstream token endpoint rejected the exchange."""

    code = "TOKEN_ROTATION_FAILED"
    status_code = HTTPStatus.BAD_GATEWAY
    solution = "Check external token service availability"

    def __init__(
        self,
        message: str,
        *,
        upstream_code: Optional[str] = None,
        status: Optional[int] = None,
        **extra: Any,
    ) -> None:
        super().__init__(message, upstreamCode=upstream_code, **extra)
        self.upstream_code = upstream_code
        self.upstream_status = status


class SecretRotationFailed(TokenRotationFailed):
    code = "SECRET_ROTATION_FAILED"


class InvalidTokenResponse(TokenRotationError):
    """The upstream answered successfully but without the expected fields."""

    code = "INVALID_TOKEN_RESPONSE"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class JobNotFound(GatewayError):
    code = "JOB_NOT_FOUND"
    status_code = HTTPStatus.NOT_FOUND


class InvalidFilter(GatewayError):
    code = "INVALID_FILTER"
    status_code = HTTPStatus.BAD_REQUEST


class CommerceApiError(GatewayError):
    """Raised when the commerce API cannot serve an order or product query."""

    code = "COMMERCE_API_ERROR"
    status_code = HTTPStatus.BAD_GATEWAY


class OrderIdFormatError(ValueError):
    """Raised when an order identifier does not have the expected path shape."""

    code = "ORDER_ID_FORMAT"


# Per-item error tags attached to order item mutations.
SKU_NOT_FOUND = "SKU_NOT_FOUND"
PLAN_NOT_FOUND = "PLAN_NOT_FOUND"
PROCESSING_ERROR = "PROCESSING_ERROR"


def error_payload(message: str, code: str, **extra: Any) -> Dict[str, Any]:
    """Build the structured error body returned to every caller."""
    payload: Dict[str, Any] = {
        "error": message,
        "code": code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


__all__ = [
    "CommerceApiError",
    "GatewayError",
    "InitialTokenExpired",
    "InvalidCredentials",
    "InvalidFilter",
    "InvalidTokenName",
    "InvalidTokenResponse",
    "JobNotFound",
    "OrderIdFormatError",
    "PLAN_NOT_FOUND",
    "PROCESSING_ERROR",
    "SKU_NOT_FOUND",
    "SecretRotationFailed",
    "TokenRotationError",
    "TokenRotationFailed",
    "TwoFactorCodeMissing",
    "Unauthorized",
    "error_payload",
]
