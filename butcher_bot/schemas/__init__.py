"""
Schemas Package for Butcher Bot
===============================

Pydantic models used for API request validation and response serialization.
The conversation core's own types (carts, turns, voice results) live in
``butcher_bot.tasks.models`` and are reused here as field types.

Schema Organization:
--------------------
- **chat.py**: Chat session and message schemas
- **orders.py**: Order placement, lookup and fulfillment schemas
- **products.py**: Catalog listing and stock update schemas

Naming Conventions:
-------------------
- *Out: Response models (e.g., OrderOut)
- *Request: Request bodies (e.g., ChatMessageRequest)
- *Response: Composite response structures (e.g., OrderListResponse)

Wire keys are camelCase where the browser client expects them; every model
also accepts its snake_case field names.
"""

from .chat import (
    ChatStartRequest,
    ChatStartResponse,
    ChatMessageRequest,
    ChatActionRequest,
    ChatMessageResponse,
)
from .orders import (
    OrderCreateRequest,
    OrderOut,
    OrderListResponse,
    OrderStatusUpdate,
    PickupCodeOut,
    PickupRedeemRequest,
)
from .products import ProductOut, StockUpdate

__all__ = [
    "ChatStartRequest",
    "ChatStartResponse",
    "ChatMessageRequest",
    "ChatActionRequest",
    "ChatMessageResponse",
    "OrderCreateRequest",
    "OrderOut",
    "OrderListResponse",
    "OrderStatusUpdate",
    "PickupCodeOut",
    "PickupRedeemRequest",
    "ProductOut",
    "StockUpdate",
]
