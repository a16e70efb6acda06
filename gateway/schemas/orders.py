"""
Pydantic models for order queries and order mutation batches.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderQuery(BaseModel):
    """Body accepted by the order filtering endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    accountid: str = Field(..., min_length=1, description="Commerce account identifier.")
    params: str = Field("", description="Raw query string forwarded to the commerce API.")
    filter_field: str = Field(..., alias="filterField", min_length=1)
    filter_value: str = Field(..., alias="filterValue")
    filter_function: str = Field(
        ...,
        alias="filterFunction",
        description="One of startsWith, endsWith or includes.",
    )


class OrderItemMutation(BaseModel):
    """One item instruction; either a ready-to-send update or an error tag."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[str] = Field(None, alias="productId")
    sku_id: Optional[str] = Field(None, alias="skuId")
    plan_id: Optional[str] = Field(None, alias="planId")
    action: Optional[str] = None
    quantity: Optional[Any] = None
    resource_id: Optional[str] = Field(None, alias="resourceId")
    attributes: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = Field(
        None, description="Error tag; items carrying one are never dispatched."
    )
    item_name: Optional[str] = Field(None, alias="itemName")
    product_name: Optional[str] = Field(None, alias="productName")
    message: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return not self.error

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OrderMutation(BaseModel):
    """All item instructions derived from one upstream order."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderId")
    order_items: List[OrderItemMutation] = Field(default_factory=list, alias="orderItems")

    @property
    def valid_items(self) -> List[OrderItemMutation]:
        return [item for item in self.order_items if item.is_valid]

    @property
    def is_dispatchable(self) -> bool:
        return bool(self.valid_items)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "orderId": self.order_id,
            "orderItems": [item.to_wire() for item in self.order_items],
        }


class JobAccepted(BaseModel):
    """Response returned once an update batch has been handed to a job."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    accepted: int
    rejected: int
    monitor: str


__all__ = [
    "JobAccepted",
    "OrderItemMutation",
    "OrderMutation",
    "OrderQuery",
]
