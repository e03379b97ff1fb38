"""
Staff Routes for Butcher Bot
============================

Fulfillment endpoints for shop staff. All require HTTP Basic auth.

Endpoints:
----------
- GET /staff/orders: List orders (optional status filter, newest first)
- PATCH /staff/orders/{order_id}/status: Move an order along its lifecycle
- POST /staff/pickup: Redeem a scanned pickup code
- PATCH /staff/products/{product_id}/stock: Toggle a product's stock flag
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import verify_staff_credentials
from ..db import get_db
from ..errors import InvalidStatusTransition, PickupVerificationError
from ..models import ORDER_STATUSES, Order, Product
from ..schemas.orders import OrderListResponse, OrderOut, OrderStatusUpdate, PickupRedeemRequest
from ..schemas.products import ProductOut, StockUpdate
from ..services.fulfillment import redeem_pickup, set_product_stock, update_order_status

logger = logging.getLogger(__name__)

# Router definition
staff_router = APIRouter(
    prefix="/staff",
    tags=["Staff"],
    dependencies=[Depends(verify_staff_credentials)],
)


@staff_router.get("/orders", response_model=OrderListResponse)
def list_orders(
    db: Session = Depends(get_db),
    status: Optional[str] = Query(
        None,
        description="Filter by status: pending, preparing, ready, completed, cancelled",
    ),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    """
    Return a paginated list of orders, newest first.
    """
    query = db.query(Order)

    if status in ORDER_STATUSES:
        query = query.filter(Order.status == status)

    total = query.count()
    offset = (page - 1) * page_size

    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(page_size)
        .all()
    )

    return OrderListResponse(
        items=[OrderOut.model_validate(o) for o in orders],
        page=page,
        page_size=page_size,
        total=total,
        has_next=offset + len(orders) < total,
    )


@staff_router.patch("/orders/{order_id}/status", response_model=OrderOut)
def change_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
) -> OrderOut:
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    try:
        order = update_order_status(db, order, payload.status)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=409, detail=str(e))

    return OrderOut.model_validate(order)


@staff_router.post("/pickup", response_model=OrderOut)
def redeem_pickup_code(
    payload: PickupRedeemRequest,
    db: Session = Depends(get_db),
) -> OrderOut:
    """Hand an order over after scanning the customer's code."""
    try:
        order = redeem_pickup(db, payload.code)
    except PickupVerificationError as e:
        logger.info("Pickup code rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    return OrderOut.model_validate(order)


@staff_router.patch("/products/{product_id}/stock", response_model=ProductOut)
def update_product_stock(
    product_id: int,
    payload: StockUpdate,
    db: Session = Depends(get_db),
) -> ProductOut:
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")

    return ProductOut.model_validate(set_product_stock(db, product, payload.in_stock))
