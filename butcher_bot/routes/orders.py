"""
Order Routes for Butcher Bot
============================

Endpoints:
----------
- POST /orders: Commit a cart as a new order (201)
- GET /orders/{order_id}: Order detail with embedded lines
- GET /orders/{order_id}/pickup-code: Payload for the pickup QR code

Identity:
---------
Orders are placed under ``userId`` (body, or the X-User-ID header set by
the auth layer) or, failing that, a guest identity.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import CartValidationError, OrderCommitError
from ..identity import caller_user_id, guest_identity
from ..models import Order
from ..schemas.orders import OrderCreateRequest, OrderOut, PickupCodeOut
from ..services.fulfillment import build_pickup_payload, encode_pickup_code
from ..services.order import commit_cart
from ..tasks.models import Cart, OrderReceipt

logger = logging.getLogger(__name__)

# Router definition
orders_router = APIRouter(prefix="/orders", tags=["Orders"])


def _get_order_or_404(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@orders_router.post("", response_model=OrderReceipt, status_code=201)
def create_order(
    request: Request,
    req: OrderCreateRequest,
    db: Session = Depends(get_db),
) -> OrderReceipt:
    """Commit a cart. The total is recomputed from line subtotals."""
    user_id = req.user_id if req.user_id is not None else caller_user_id(request)
    guest_id = None
    if user_id is None:
        guest_id = req.guest_id or guest_identity(request)

    cart = Cart(lines=req.lines, estimated_minutes=req.estimated_minutes)
    try:
        return commit_cart(
            db,
            cart,
            notes=req.notes,
            user_id=user_id,
            guest_id=guest_id,
        )
    except CartValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrderCommitError as e:
        logger.error("Order commit failed: %s", e)
        raise HTTPException(
            status_code=500,
            detail="The order could not be recorded. Please try again.",
        )


@orders_router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db)) -> OrderOut:
    return OrderOut.model_validate(_get_order_or_404(db, order_id))


@orders_router.get("/{order_id}/pickup-code", response_model=PickupCodeOut)
def get_pickup_code(order_id: int, db: Session = Depends(get_db)) -> PickupCodeOut:
    """What the customer's QR code encodes; scanned by staff at pickup."""
    order = _get_order_or_404(db, order_id)
    if order.status in ("completed", "cancelled"):
        raise HTTPException(status_code=409, detail=f"Order is already {order.status}")
    payload = build_pickup_payload(order)
    return PickupCodeOut(
        order_id=payload["orderId"],
        order_number=payload["orderNumber"],
        action=payload["action"],
        code=encode_pickup_code(order),
    )
