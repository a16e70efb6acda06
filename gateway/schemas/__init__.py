"""Public schema exports."""

from .auth import InitialTokenRequest, TokenRotationResponse, UserRefreshTokenResponse
from .orders import JobAccepted, OrderItemMutation, OrderMutation, OrderQuery

__all__ = [
    "InitialTokenRequest",
    "JobAccepted",
    "OrderItemMutation",
    "OrderMutation",
    "OrderQuery",
    "TokenRotationResponse",
    "UserRefreshTokenResponse",
]
