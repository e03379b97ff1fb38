"""
Order Schemas for Butcher Bot
=============================

Pydantic models for order placement, lookup and staff fulfillment.

Endpoint Coverage:
------------------
- POST /orders: Commit a cart as a new order
- GET /orders/{id}: Order detail with embedded lines
- GET /orders/{id}/pickup-code: Pickup verification payload
- GET /staff/orders: Paginated order list
- PATCH /staff/orders/{id}/status: Status transition
- POST /staff/pickup: Redeem a scanned pickup code

Totals:
-------
A ``total`` sent with a commit request is accepted for compatibility but
never used; the server recomputes it from line subtotals.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..tasks.models import CartLine


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OrderCreateRequest(_CamelModel):
    lines: List[CartLine] = Field(..., alias="lines")
    total: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    estimated_minutes: Optional[int] = Field(default=None, alias="estimatedMinutes", gt=0)
    user_id: Optional[int] = Field(default=None, alias="userId")
    guest_id: Optional[str] = Field(default=None, alias="guestId", max_length=64)


class OrderOut(_CamelModel):
    """Full order as stored, lines in display form."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    order_number: str = Field(alias="orderNumber")
    status: str
    items: List[Dict[str, Any]]
    total_amount: Decimal = Field(alias="totalAmount")
    notes: Optional[str] = None
    estimated_minutes: Optional[int] = Field(default=None, alias="estimatedMinutes")
    user_id: Optional[int] = Field(default=None, alias="userId")
    guest_id: Optional[str] = Field(default=None, alias="guestId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class OrderListResponse(BaseModel):
    """
    Paginated list of orders, newest first.

    Attributes:
        items: Orders on this page
        page: Current page number (1-indexed)
        page_size: Number of items per page
        total: Total number of orders matching the filter
        has_next: Whether more pages exist
    """
    items: List[OrderOut]
    page: int
    page_size: int
    total: int
    has_next: bool


class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "preparing", "ready", "completed", "cancelled"]


class PickupCodeOut(_CamelModel):
    order_id: int = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    action: str
    # Serialized payload, ready to be rendered as a QR code
    code: str


class PickupRedeemRequest(BaseModel):
    """A scanned pickup code, as the raw string or the decoded object."""
    code: Union[str, Dict[str, Any]]
