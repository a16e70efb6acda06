"""
Turn raw commerce orders into order mutations ready for a job.

Orders are filtered by a string predicate over one item field, then each
item's SKU is resolved against the product catalog to find its target plan.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from gateway.core.errors import PLAN_NOT_FOUND, PROCESSING_ERROR, SKU_NOT_FOUND, InvalidFilter
from gateway.schemas.orders import OrderItemMutation, OrderMutation, OrderQuery

logger = logging.getLogger(__name__)

FILTER_FUNCTIONS: Dict[str, Callable[[str, str], bool]] = {
    "startsWith": lambda value, expected: value.startswith(expected),
    "endsWith": lambda value, expected: value.endswith(expected),
    "includes": lambda value, expected: expected in value,
}

UPDATE_ATTRIBUTES = [{"name": "operations", "value": "changeSubscription"}]

ItemPredicate = Callable[[Dict[str, Any]], bool]


def build_item_filter(field: str, value: str, function: str) -> ItemPredicate:
    """Build the predicate; a leading ``!`` on ``value`` negates it."""
    compare = FILTER_FUNCTIONS.get(function)
    if compare is None:
        raise InvalidFilter(
            f"Unsupported filter function {function!r}",
            supported=sorted(FILTER_FUNCTIONS),
        )
    negate = value.startswith("!")
    expected = value[1:] if negate else value

    def matches(item: Dict[str, Any]) -> bool:
        field_value = item.get(field)
        if not field_value:
            return False
        result = compare(str(field_value), expected)
        return not result if negate else result

    return matches


def filter_orders(orders: Iterable[Dict[str, Any]], predicate: ItemPredicate) -> List[Dict[str, Any]]:
    """Keep orders whose items all satisfy ``predicate``."""
    return [
        order
        for order in orders
        if all(predicate(item) for item in order.get("orderItems") or [])
    ]


def unique_product_names(orders: Iterable[Dict[str, Any]]) -> List[str]:
    names: Dict[str, None] = {}
    for order in orders:
        for item in order.get("orderItems") or []:
            name = item.get("productName")
            if name:
                names.setdefault(name, None)
    return list(names)


def find_product_and_sku(
    products: Iterable[Dict[str, Any]], sku_id: Any
) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    for product in products:
        skus = (product.get("definition") or {}).get("skus") or []
        for sku in skus:
            if sku.get("id") == sku_id:
                return product, sku
    return None, None


def resolve_item(
    item: Dict[str, Any], products: List[Dict[str, Any]], plan_suffix: str
) -> OrderItemMutation:
    """Resolve one order item into an update instruction or an error item."""
    item_name = item.get("name")
    product_name = item.get("productName")
    sku_id = item.get("skuId")
    try:
        product, sku = find_product_and_sku(products, sku_id)
        if product is None or sku is None:
            return OrderItemMutation(
                error=SKU_NOT_FOUND,
                item_name=item_name,
                product_name=product_name,
                message=f"SKU {sku_id} not found in any product",
            )

        plan = next(
            (
                candidate
                for candidate in sku.get("plans") or []
                if str(candidate.get("mpnId") or "").endswith(plan_suffix)
            ),
            None,
        )
        if plan is None:
            return OrderItemMutation(
                error=PLAN_NOT_FOUND,
                item_name=item_name,
                product_name=product_name,
                message=f"No matching plan for SKU {sku_id}",
            )

        return OrderItemMutation(
            product_id=str(product["name"]).split("/")[-1],
            sku_id=sku_id,
            plan_id=plan.get("id"),
            action="UPDATE",
            quantity=item.get("quantity"),
            resource_id=item.get("resourceId"),
            attributes=[dict(attribute) for attribute in UPDATE_ATTRIBUTES],
        )
    except Exception as exc:
        logger.warning("Could not resolve item %s: %s", item_name, exc)
        return OrderItemMutation(
            error=PROCESSING_ERROR,
            item_name=item_name,
            product_name=product_name,
            message=str(exc),
        )


def build_order_mutation(
    order: Dict[str, Any], products: List[Dict[str, Any]], plan_suffix: str
) -> OrderMutation:
    return OrderMutation(
        order_id=str(order.get("name") or ""),
        order_items=[
            resolve_item(item, products, plan_suffix)
            for item in order.get("orderItems") or []
        ],
    )


class OrderPreparationService:
    """Fetch, filter and resolve orders through the commerce API."""

    def __init__(self, commerce_client: Any, plan_suffix: str = "P1Y:Y") -> None:
        self._client = commerce_client
        self._plan_suffix = plan_suffix

    async def fetch_filtered_orders(self, query: OrderQuery) -> List[Dict[str, Any]]:
        predicate = build_item_filter(
            query.filter_field, query.filter_value, query.filter_function
        )
        data = await self._client.fetch_orders(query.accountid, query.params)
        return filter_orders(data.get("orders") or [], predicate)

    async def prepare_mutations(self, query: OrderQuery) -> List[OrderMutation]:
        orders = await self.fetch_filtered_orders(query)
        products = await self._client.fetch_products(
            query.accountid, unique_product_names(orders)
        )
        return [build_order_mutation(order, products, self._plan_suffix) for order in orders]


__all__ = [
    "FILTER_FUNCTIONS",
    "OrderPreparationService",
    "build_item_filter",
    "build_order_mutation",
    "filter_orders",
    "resolve_item",
    "unique_product_names",
]
