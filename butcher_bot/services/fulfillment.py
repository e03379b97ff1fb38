"""
Fulfillment Service for Butcher Bot
===================================

Staff-side operations on committed orders and the catalog.

Status Lifecycle:
-----------------
    pending ──> preparing ──> ready ──> completed
       │            │           │
       └────────────┴───────────┴──> cancelled

completed and cancelled are terminal. Pickup redemption is the one path that
may jump straight to completed from any open status: the customer is at the
counter with the code.

Pickup Codes:
-------------
The code shown to the customer (as a QR image in the client) encodes
``{"orderId": 12, "orderNumber": "ORD-...", "action": "deliver"}``.
Redemption checks the action and that id and number belong to the same
order.
"""

import json
import logging
from typing import Any, Dict, Union

from sqlalchemy.orm import Session

from ..errors import InvalidStatusTransition, PickupVerificationError
from ..models import ORDER_STATUSES, Order, Product


logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "pending": {"preparing", "cancelled"},
    "preparing": {"ready", "cancelled"},
    "ready": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

TERMINAL_STATUSES = {"completed", "cancelled"}

PICKUP_ACTION = "deliver"


def update_order_status(db: Session, order: Order, new_status: str) -> Order:
    """Move ``order`` to ``new_status`` if the lifecycle allows it."""
    if new_status not in ORDER_STATUSES:
        raise InvalidStatusTransition(order.status, new_status)
    if new_status not in ALLOWED_TRANSITIONS.get(order.status, set()):
        raise InvalidStatusTransition(order.status, new_status)

    previous = order.status
    order.status = new_status
    db.commit()
    db.refresh(order)
    logger.info("Order %s: %s -> %s", order.order_number, previous, new_status)
    return order


def build_pickup_payload(order: Order) -> Dict[str, Any]:
    return {
        "orderId": order.id,
        "orderNumber": order.order_number,
        "action": PICKUP_ACTION,
    }


def encode_pickup_code(order: Order) -> str:
    """The string a QR code for this order carries."""
    return json.dumps(build_pickup_payload(order), separators=(",", ":"))


def redeem_pickup(db: Session, code: Union[str, Dict[str, Any]]) -> Order:
    """
    Hand over an order whose pickup code was scanned at the counter.

    Raises:
        PickupVerificationError: unreadable code, wrong action, unknown order,
            id/number mismatch, or the order is already closed.
    """
    if isinstance(code, str):
        try:
            payload = json.loads(code)
        except json.JSONDecodeError as e:
            raise PickupVerificationError("Pickup code is not valid JSON") from e
    else:
        payload = code

    if not isinstance(payload, dict):
        raise PickupVerificationError("Pickup code is not an object")
    if payload.get("action") != PICKUP_ACTION:
        raise PickupVerificationError("Pickup code is not a delivery code")

    order_id = payload.get("orderId")
    if not isinstance(order_id, int) or isinstance(order_id, bool):
        raise PickupVerificationError("Pickup code has no order id")

    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None or order.order_number != payload.get("orderNumber"):
        raise PickupVerificationError("Pickup code does not match any order")
    if order.status in TERMINAL_STATUSES:
        raise PickupVerificationError(f"Order {order.order_number} is already {order.status}")

    previous = order.status
    order.status = "completed"
    db.commit()
    db.refresh(order)
    logger.info("Order %s picked up (was %s)", order.order_number, previous)
    return order


def set_product_stock(db: Session, product: Product, in_stock: bool) -> Product:
    """Flip a product's stock flag; the next chat turn sees the change."""
    product.in_stock = in_stock
    db.commit()
    db.refresh(product)
    logger.info("Product %s (#%d) in_stock=%s", product.name, product.id, in_stock)
    return product
