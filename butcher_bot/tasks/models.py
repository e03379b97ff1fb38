"""
Pydantic models for the conversational ordering core.

The shapes here are both the in-process representation and the wire format
(camelCase aliases, money as decimal strings):
- InventoryFact: one catalog row as shown to the model
- ConversationTurn: one append-only history entry
- CartLine / Cart: the running order proposal
- SuggestedProduct / TurnResult: what one interpreted text turn produced
- ExtractedItem / TranscriptionResult: what one voice turn produced
- OrderReceipt: what a successful commit hands back
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .parsers.deterministic import parse_quantity_kg
from .pricing import ZERO, line_subtotal, parse_money, sum_subtotals

logger = logging.getLogger(__name__)


def _coerce_product_id(value: Any) -> int | None:
    """Catalog ids arrive as ints, numeric strings, or junk from the model."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer():
        return int(value) if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
        return parsed if parsed > 0 else None
    return None


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    def to_wire(self) -> dict:
        """JSON-safe dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Inventory
# =============================================================================

class InventoryFact(_WireModel):
    """Snapshot of one product for a single prompt. Never persisted."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    name: str
    unit_price: Decimal = Field(alias="unitPrice")
    unit: str = "kg"
    in_stock: bool = Field(default=True, alias="inStock")
    description: str | None = None


# =============================================================================
# Conversation history
# =============================================================================

class Speaker(str, Enum):
    CUSTOMER = "customer"
    ASSISTANT = "assistant"


class ConversationTurn(_WireModel):
    """One exchange in a session. Immutable once appended."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    speaker: Speaker
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def _accept_chat_roles(cls, data: Any) -> Any:
        # Browser clients send OpenAI-style {"role": "user", "content": ...}
        if isinstance(data, dict) and "speaker" not in data and "role" in data:
            data = dict(data)
            role = data.pop("role")
            data["speaker"] = "customer" if role == "user" else role
            if "text" not in data and "content" in data:
                data["text"] = data.pop("content")
        return data


# =============================================================================
# Cart
# =============================================================================

class CartLine(_WireModel):
    """One line of the running proposal.

    ``product_id`` is None when the line did not resolve to a catalog row;
    such lines are kept for display and commit but never become normalized
    order rows. A missing subtotal is derived from unit price and a
    parseable kilogram quantity; a line with neither is invalid.
    """

    product_id: int | None = Field(default=None, alias="productId")
    name: str = Field(min_length=1)
    quantity: str = Field(default="", alias="qty")
    unit_price: Decimal | None = Field(default=None, alias="unitPrice")
    subtotal: Decimal | None = None

    @field_validator("product_id", mode="before")
    @classmethod
    def _product_id(cls, value: Any) -> int | None:
        return _coerce_product_id(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return f"{value}kg"
        return value

    @field_validator("unit_price", "subtotal", mode="before")
    @classmethod
    def _money(cls, value: Any) -> Decimal | None:
        if value is None:
            return None
        amount = parse_money(value)
        if amount is None:
            raise ValueError(f"not a valid amount: {value!r}")
        return amount

    @model_validator(mode="after")
    def _derive_subtotal(self) -> "CartLine":
        if self.subtotal is None and self.unit_price is not None:
            kg = parse_quantity_kg(self.quantity)
            if kg is not None:
                self.subtotal = line_subtotal(self.unit_price, kg)
        if self.subtotal is None:
            raise ValueError(f"line '{self.name}' has no subtotal")
        return self

    @property
    def quantity_kg(self) -> Decimal | None:
        return parse_quantity_kg(self.quantity)


class Cart(_WireModel):
    """The running order proposal for one session.

    ``total`` is always recomputed from the line subtotals; whatever total
    the model or the client declared is ignored.
    """

    lines: list[CartLine] = Field(default_factory=list, alias="items")
    total: Decimal = ZERO
    estimated_minutes: int | None = Field(default=None, alias="estimatedMinutes")

    @field_validator("total", mode="before")
    @classmethod
    def _ignore_declared_total(cls, value: Any) -> Decimal:
        return ZERO

    @field_validator("estimated_minutes", mode="before")
    @classmethod
    def _minutes(cls, value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            return None
        return minutes if minutes > 0 else None

    @model_validator(mode="after")
    def _recompute_total(self) -> "Cart":
        self.total = sum_subtotals(line.subtotal for line in self.lines)
        return self

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @classmethod
    def empty(cls) -> "Cart":
        return cls()

    @classmethod
    def from_upstream(cls, data: Any) -> "Cart | None":
        """Build a cart from a model-produced proposal, dropping bad lines.

        Returns None for a null or non-object proposal, and for one whose
        lines were all unusable: only an explicitly empty ``items`` list
        (or a missing one) yields an empty cart.
        """
        if not isinstance(data, dict):
            return None

        raw_items = data.get("items")
        if raw_items is None:
            raw_items = data.get("lines") or []
        if not isinstance(raw_items, list):
            logger.warning("Ignoring proposal whose items is not a list: %r", raw_items)
            return None

        lines = []
        for raw in raw_items:
            try:
                lines.append(CartLine.model_validate(raw))
            except ValidationError as e:
                logger.warning("Dropping unusable proposal line %r: %s", raw, e.errors()[0]["msg"])

        if raw_items and not lines:
            logger.warning("All %d proposal lines were unusable; treating as no proposal", len(raw_items))
            return None

        return cls(lines=lines, estimated_minutes=data.get("estimatedMinutes"))


# =============================================================================
# Turn results
# =============================================================================

class SuggestedProduct(_WireModel):
    id: int
    name: str
    price: Decimal
    unit: str = "kg"

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, value: Any) -> int:
        product_id = _coerce_product_id(value)
        if product_id is None:
            raise ValueError(f"not a product id: {value!r}")
        return product_id

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, value: Any) -> Decimal:
        amount = parse_money(value)
        if amount is None:
            raise ValueError(f"not a valid price: {value!r}")
        return amount


class TurnResult(_WireModel):
    """Structured outcome of interpreting one text utterance.

    ``degraded`` marks a result produced because the upstream call failed;
    its reply is an apology and its structured fields are empty.
    """

    reply_text: str = Field(alias="reply")
    suggested_products: list[SuggestedProduct] = Field(default_factory=list, alias="suggestedProducts")
    order_proposal: Cart | None = Field(default=None, alias="orderProposal")
    show_confirmation: bool = Field(default=False, alias="showConfirmation")
    auto_confirm: bool = Field(default=False, alias="autoConfirm")
    degraded: bool = Field(default=False, exclude=True)


# =============================================================================
# Voice
# =============================================================================

class VoiceIntent(str, Enum):
    ORDER = "order"
    QUESTION = "question"
    GREETING = "greeting"
    OTHER = "other"


class ExtractedItem(_WireModel):
    """An item heard in a voice order. Unknown products keep a null id."""
    product_id: int | None = Field(default=None, alias="productId")
    name: str
    qty: str = ""
    notes: str | None = None

    @field_validator("product_id", mode="before")
    @classmethod
    def _product_id(cls, value: Any) -> int | None:
        return _coerce_product_id(value)

    @field_validator("qty", mode="before")
    @classmethod
    def _qty(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class TranscriptionResult(_WireModel):
    text: str
    intent: VoiceIntent = VoiceIntent.OTHER
    extracted_items: list[ExtractedItem] = Field(default_factory=list, alias="extractedItems")


# =============================================================================
# Orders
# =============================================================================

class OrderReceipt(_WireModel):
    """What the commit service returns for confirmation messaging."""
    order_id: int = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    total_amount: Decimal = Field(alias="totalAmount")
    status: str = "pending"
    estimated_minutes: int | None = Field(default=None, alias="estimatedMinutes")
