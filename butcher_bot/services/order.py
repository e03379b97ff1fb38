"""
Order Commit Service for Butcher Bot
====================================

Turns a finalized cart into a durable order record.

Commit Steps:
-------------
1. Validate the cart (non-empty, at most MAX_CART_LINES lines).
2. Recompute the total from line subtotals; a declared total is never used.
3. Insert the order header (status: pending) with the lines embedded as
   JSON. A clash on the unique order number rolls back and retries with a
   fresh number, up to ORDER_NUMBER_MAX_ATTEMPTS times. Any other constraint
   failure is an OrderCommitError straight away.
4. Best-effort: write normalized OrderItem rows for lines that reference a
   catalog product and carry a parseable kilogram quantity. If this fails,
   the header stays committed and the failure is only logged.

Duplicates:
-----------
There is no idempotency key: committing the same cart twice creates two
orders.

Usage:
------
    from butcher_bot.services.order import commit_cart

    receipt = commit_cart(db, cart, notes="cortar fino", user_id=42)
    receipt.order_number  # "ORD-1718000000000-4821"
"""

import logging
import random
import time
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import DEFAULT_ESTIMATED_MINUTES, MAX_CART_LINES, ORDER_NUMBER_MAX_ATTEMPTS
from ..errors import CartValidationError, OrderCommitError, OrderNumberConflictError
from ..models import Order, OrderItem, Product
from ..tasks.models import Cart, OrderReceipt
from ..tasks.pricing import quantize_money, sum_subtotals


logger = logging.getLogger(__name__)


def generate_order_number() -> str:
    """Millisecond timestamp plus a random four-digit suffix."""
    return f"ORD-{int(time.time() * 1000)}-{random.randint(1000, 9999)}"


def validate_cart_for_commit(cart: Cart) -> None:
    if cart.is_empty:
        raise CartValidationError("Cannot place an order with an empty cart")
    if len(cart.lines) > MAX_CART_LINES:
        raise CartValidationError(
            f"Cart has {len(cart.lines)} lines; the maximum is {MAX_CART_LINES}"
        )


def order_to_receipt(order: Order) -> OrderReceipt:
    return OrderReceipt(
        order_id=order.id,
        order_number=order.order_number,
        total_amount=quantize_money(order.total_amount),
        status=order.status,
        estimated_minutes=order.estimated_minutes,
    )


def commit_cart(
    db: Session,
    cart: Cart,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
    guest_id: Optional[str] = None,
    estimated_minutes: Optional[int] = None,
    number_factory: Callable[[], str] = generate_order_number,
) -> OrderReceipt:
    """
    Persist ``cart`` as a new pending order and return its receipt.

    Raises:
        CartValidationError: empty or oversized cart (nothing written)
        OrderNumberConflictError: every generated number was taken
        OrderCommitError: the header could not be written
    """
    validate_cart_for_commit(cart)

    total = sum_subtotals(line.subtotal for line in cart.lines)
    minutes = estimated_minutes or cart.estimated_minutes or DEFAULT_ESTIMATED_MINUTES
    items = [line.to_wire() for line in cart.lines]

    for attempt in range(1, ORDER_NUMBER_MAX_ATTEMPTS + 1):
        order = Order(
            order_number=number_factory(),
            status="pending",
            items=items,
            notes=notes,
            estimated_minutes=minutes,
            total_amount=total,
            user_id=user_id,
            guest_id=guest_id,
        )
        db.add(order)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if not _order_number_taken(db, order.order_number):
                logger.error("Order header violated a constraint: %s", e.orig)
                raise OrderCommitError("The order could not be recorded") from e
            logger.warning(
                "Order number %s already taken (attempt %d/%d)",
                order.order_number, attempt, ORDER_NUMBER_MAX_ATTEMPTS,
            )
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Order header insert failed: %s", e)
            raise OrderCommitError("The order could not be recorded") from e

        db.refresh(order)
        logger.info(
            "Order %s committed (#%d, %d lines, total %s)",
            order.order_number, order.id, len(items), total,
        )
        _persist_line_rows(db, order, cart)
        return order_to_receipt(order)

    raise OrderNumberConflictError(ORDER_NUMBER_MAX_ATTEMPTS)


def _order_number_taken(db: Session, order_number: str) -> bool:
    """Whether an IntegrityError on insert was a clash on the order number."""
    try:
        return db.query(Order.id).filter(Order.order_number == order_number).first() is not None
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Could not check order number %s after insert conflict", order_number, exc_info=True)
        return False


def _line_rows_for(db: Session, order: Order, cart: Cart) -> List[OrderItem]:
    """Normalized rows for lines with a known product and a kg quantity."""
    candidates = [
        line for line in cart.lines
        if line.product_id is not None and line.quantity_kg is not None
    ]
    if not candidates:
        return []

    ids = {line.product_id for line in candidates}
    existing = {
        row.id for row in db.query(Product.id).filter(Product.id.in_(ids)).all()
    }

    rows = []
    for line in candidates:
        if line.product_id not in existing:
            continue
        kg = line.quantity_kg
        unit_price = line.unit_price if line.unit_price is not None else quantize_money(line.subtotal / kg)
        rows.append(
            OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                quantity=kg,
                unit_price=unit_price,
            )
        )
    return rows


def _persist_line_rows(db: Session, order: Order, cart: Cart) -> None:
    try:
        rows = _line_rows_for(db, order, cart)
        if not rows:
            return
        db.add_all(rows)
        db.commit()
        logger.debug("Order %s: %d normalized line rows written", order.order_number, len(rows))
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Order %s placed, but its normalized line rows could not be written",
            order.order_number,
            exc_info=True,
        )
