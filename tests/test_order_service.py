"""
Tests for the order commit service.
"""

import logging
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from butcher_bot.config import MAX_CART_LINES
from butcher_bot.errors import CartValidationError, OrderCommitError, OrderNumberConflictError
from butcher_bot.models import Order, OrderItem
from butcher_bot.services import order as order_service
from butcher_bot.services.order import commit_cart, generate_order_number
from butcher_bot.tasks.models import Cart
from tests.helpers import CHORIZO_ID, CHORIZO_LINE, SOLOMILLO_ID, SOLOMILLO_LINE, cart_of


def test_generate_order_number_format():
    number = generate_order_number()
    prefix, millis, suffix = number.split("-")
    assert prefix == "ORD"
    assert millis.isdigit() and len(millis) >= 13
    assert 1000 <= int(suffix) <= 9999


def test_commit_recomputes_total(db_session):
    cart = Cart.model_validate({
        "items": [
            {"productId": SOLOMILLO_ID, "name": "Solomillo", "qty": "0.25kg", "subtotal": "12.50"},
            {"productId": CHORIZO_ID, "name": "Chorizo", "qty": "0.5kg", "subtotal": "7.45"},
        ],
        "total": "999.00",
    })

    receipt = commit_cart(db_session, cart)

    order = db_session.query(Order).filter(Order.id == receipt.order_id).one()
    assert receipt.total_amount == Decimal("19.95")
    assert Decimal(order.total_amount) == Decimal("19.95")
    assert order.status == "pending"
    assert receipt.to_wire()["totalAmount"] == "19.95"


def test_commit_stores_lines_and_metadata(db_session):
    cart = cart_of(SOLOMILLO_LINE, CHORIZO_LINE)

    receipt = commit_cart(db_session, cart, notes="cortar fino", user_id=42)

    order = db_session.query(Order).filter(Order.id == receipt.order_id).one()
    assert order.items == [SOLOMILLO_LINE, CHORIZO_LINE]
    assert order.notes == "cortar fino"
    assert order.user_id == 42
    assert order.guest_id is None
    assert receipt.order_number == order.order_number


def test_estimated_minutes_precedence(db_session):
    from_cart = Cart.model_validate({"items": [SOLOMILLO_LINE], "estimatedMinutes": 25})
    assert commit_cart(db_session, from_cart).estimated_minutes == 25
    assert commit_cart(db_session, from_cart, estimated_minutes=40).estimated_minutes == 40
    assert commit_cart(db_session, cart_of(SOLOMILLO_LINE)).estimated_minutes == 15


def test_normalized_rows_for_catalog_lines(db_session):
    cart = cart_of(
        SOLOMILLO_LINE,
        CHORIZO_LINE,
        {"productId": None, "name": "Morcilla casera", "qty": "200g", "subtotal": "2.40"},
        {"productId": 999, "name": "Producto retirado", "qty": "1kg", "subtotal": "5.00"},
    )

    receipt = commit_cart(db_session, cart)

    rows = db_session.query(OrderItem).filter(OrderItem.order_id == receipt.order_id).order_by(OrderItem.id).all()
    assert [(r.product_id, Decimal(r.quantity)) for r in rows] == [
        (SOLOMILLO_ID, Decimal("0.500")),
        (CHORIZO_ID, Decimal("0.250")),
    ]
    assert Decimal(rows[0].unit_price) == Decimal("48.90")
    # Display copy keeps every line
    order = db_session.query(Order).filter(Order.id == receipt.order_id).one()
    assert len(order.items) == 4


def test_unit_price_derived_when_missing(db_session):
    cart = cart_of({"productId": SOLOMILLO_ID, "name": "Solomillo", "qty": "500g", "subtotal": "24.45"})
    receipt = commit_cart(db_session, cart)
    row = db_session.query(OrderItem).filter(OrderItem.order_id == receipt.order_id).one()
    assert Decimal(row.unit_price) == Decimal("48.90")


def test_empty_cart_is_rejected(db_session):
    with pytest.raises(CartValidationError):
        commit_cart(db_session, Cart.empty())
    assert db_session.query(Order).count() == 0


def test_too_many_lines_is_rejected(db_session):
    lines = [{"name": f"Línea {i}", "qty": "1kg", "subtotal": "1.00"} for i in range(MAX_CART_LINES + 1)]
    with pytest.raises(CartValidationError):
        commit_cart(db_session, cart_of(*lines))
    assert db_session.query(Order).count() == 0


def test_order_number_collision_retries(db_session):
    taken = commit_cart(db_session, cart_of(SOLOMILLO_LINE), number_factory=lambda: "ORD-1-1111").order_number
    numbers = iter([taken, "ORD-2-2222"])

    receipt = commit_cart(db_session, cart_of(CHORIZO_LINE), number_factory=lambda: next(numbers))

    assert receipt.order_number == "ORD-2-2222"
    assert db_session.query(Order).count() == 2
    assert db_session.query(Order).filter(Order.order_number == "ORD-2-2222").count() == 1


def test_order_number_collision_gives_up(db_session, caplog):
    commit_cart(db_session, cart_of(SOLOMILLO_LINE), number_factory=lambda: "ORD-1-1111")

    with caplog.at_level(logging.WARNING, logger="butcher_bot.services.order"):
        with pytest.raises(OrderNumberConflictError) as exc_info:
            commit_cart(db_session, cart_of(CHORIZO_LINE), number_factory=lambda: "ORD-1-1111")

    assert isinstance(exc_info.value, OrderCommitError)
    assert db_session.query(Order).count() == 1
    assert sum("already taken" in r.getMessage() for r in caplog.records) == exc_info.value.attempts


def test_header_failure_raises_commit_error(db_session, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT INTO orders", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", broken_commit)

    with pytest.raises(OrderCommitError):
        commit_cart(db_session, cart_of(SOLOMILLO_LINE))


def test_other_constraint_failure_is_not_retried(db_session, monkeypatch):
    numbers = []

    def factory():
        numbers.append(f"ORD-3-{3000 + len(numbers)}")
        return numbers[-1]

    def not_null_violation():
        raise IntegrityError("INSERT INTO orders", {}, Exception("NOT NULL constraint failed: orders.total_amount"))

    monkeypatch.setattr(db_session, "commit", not_null_violation)

    with pytest.raises(OrderCommitError) as exc_info:
        commit_cart(db_session, cart_of(SOLOMILLO_LINE), number_factory=factory)

    assert not isinstance(exc_info.value, OrderNumberConflictError)
    assert len(numbers) == 1


def test_line_row_failure_keeps_order(db_session, monkeypatch, caplog):
    def broken_rows(db, order, cart):
        raise OperationalError("SELECT products.id", {}, Exception("connection reset"))

    monkeypatch.setattr(order_service, "_line_rows_for", broken_rows)

    with caplog.at_level(logging.WARNING, logger="butcher_bot.services.order"):
        receipt = commit_cart(db_session, cart_of(SOLOMILLO_LINE))

    assert db_session.query(Order).filter(Order.id == receipt.order_id).count() == 1
    assert db_session.query(OrderItem).count() == 0
    assert any("line rows could not be written" in r.getMessage() for r in caplog.records)
