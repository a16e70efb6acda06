"""Expose constructed client wrappers."""

from .commerce_api import CommerceApiClient
from .token_endpoint import TokenEndpointClient, TokenEndpointResponse

__all__ = [
    "CommerceApiClient",
    "TokenEndpointClient",
    "TokenEndpointResponse",
]
