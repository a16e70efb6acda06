"""
Transport for provider token and secret-rotation exchanges.

The client knows how to encode a rendered body for a content type and how to
read the answer; it does not interpret the answer. Interpretation belongs to
the rotation engines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from gateway.models.providers import FORM_CONTENT_TYPE, JSON_CONTENT_TYPE


@dataclass(frozen=True)
class TokenEndpointResponse:
    status_code: int
    payload: Optional[Dict[str, Any]] = field(default=None, repr=False)
    text: str = field(default="", repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class TokenEndpointClient:
    """Send templated credential requests to provider endpoints."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def send(
        self,
        *,
        method: str,
        url: str,
        content_type: str,
        body: Any,
        headers: Optional[Mapping[str, str]] = None,
    ) -> TokenEndpointResponse:
        """Issue one exchange. Transport failures propagate as ``httpx.HTTPError``."""
        request_headers = {"Content-Type": content_type, "Accept": JSON_CONTENT_TYPE}
        request_headers.update(headers or {})
        options: Dict[str, Any] = {"headers": request_headers}

        if method.upper() == "GET":
            options["params"] = body or None
        elif content_type.startswith(FORM_CONTENT_TYPE):
            options["data"] = {key: str(value) for key, value in (body or {}).items()}
        else:
            options["json"] = body

        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.request(method.upper(), url, **options)

        return TokenEndpointResponse(
            status_code=response.status_code,
            payload=_json_or_none(response),
            text=response.text,
        )


def _json_or_none(response: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


__all__ = ["TokenEndpointClient", "TokenEndpointResponse"]
