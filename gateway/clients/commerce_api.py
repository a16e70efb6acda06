"""
Client for the commerce API bridge (orders, products, order updates).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

import httpx

from gateway.core.config import CommerceApiSettings
from gateway.core.errors import CommerceApiError
from gateway.utils.http import RetryConfig, request_with_retry

if TYPE_CHECKING:
    from gateway.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class CommerceApiClient:
    """Wrap the commerce API endpoints, authenticating with the current access token."""

    def __init__(
        self,
        settings: CommerceApiSettings,
        credential_store: CredentialStore,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._settings = settings
        self._credentials = credential_store
        self._timeout = timeout
        self._transport = transport
        self._retry = retry_config or RetryConfig()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _auth_headers(self, **extra: str) -> Dict[str, str]:
        token = self._credentials.get(self._settings.provider) or ""
        headers = {"Authorization": f"Bearer {token}"}
        headers.update(extra)
        return headers

    async def fetch_orders(self, account_id: str, params: str = "") -> Dict[str, Any]:
        """Return the raw ``{orders: [...]}`` document for an account."""
        headers = self._auth_headers(accountid=account_id, params=params)
        async with self._client() as client:
            try:
                response = await request_with_retry(
                    client.get,
                    self._settings.orders_path,
                    headers=headers,
                    retry_config=self._retry,
                )
            except httpx.HTTPError as exc:
                raise CommerceApiError(f"Fetching orders failed: {exc}") from exc
        data = _json_document(response, "orders")
        data.setdefault("orders", [])
        return data

    async def fetch_products(
        self, account_id: str, product_names: Iterable[str]
    ) -> List[Dict[str, Any]]:
        """Look up each product by name concurrently and flatten the results."""
        names = list(product_names)
        if not names:
            return []
        async with self._client() as client:
            documents = await asyncio.gather(
                *(self._fetch_product(client, account_id, name) for name in names)
            )
        products: List[Dict[str, Any]] = []
        for document in documents:
            products.extend(document.get("products") or [])
        return products

    async def _fetch_product(
        self, client: httpx.AsyncClient, account_id: str, product_name: str
    ) -> Dict[str, Any]:
        query = (
            f"?pageSize=1&language={self._settings.product_language}"
            f"&filter.name={product_name}"
        )
        headers = self._auth_headers(accountid=account_id, params=query)
        try:
            response = await request_with_retry(
                client.get,
                self._settings.products_path,
                headers=headers,
                retry_config=self._retry,
            )
        except httpx.HTTPError as exc:
            raise CommerceApiError(
                f"Fetching product {product_name!r} failed: {exc}"
            ) from exc
        return _json_document(response, "products")

    async def update_order(
        self,
        account_id: str,
        customer_id: str,
        order_items: List[Dict[str, Any]],
    ) -> Any:
        """Send one batched order update. Never retried."""
        headers = self._auth_headers(accountid=account_id, customerid=customer_id)
        async with self._client() as client:
            response = await client.post(
                self._settings.add_order_path,
                json={"orderItems": order_items},
                headers=headers,
            )

        if not response.is_success:
            reason = _error_message(response) or response.reason_phrase
            raise CommerceApiError(f"Order update failed: {reason}")

        try:
            return response.json()
        except ValueError:
            return response.text


def _json_document(response: httpx.Response, kind: str) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise CommerceApiError(f"Commerce API returned a non-JSON {kind} document.") from exc
    if not isinstance(data, dict):
        raise CommerceApiError(f"Commerce API returned a malformed {kind} document.")
    return data


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        message = data.get("message")
        if message is None and isinstance(data.get("error"), dict):
            message = data["error"].get("message")
        return str(message) if message else None
    return None


__all__ = ["CommerceApiClient"]
