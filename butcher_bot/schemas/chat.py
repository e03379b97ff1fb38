"""
Chat Schemas for Butcher Bot
============================

Pydantic models for the chat API endpoints.

Endpoint Coverage:
------------------
- POST /chat/start: Start a new chat session
- POST /chat/message: Send a message and receive the reconciled turn
- POST /chat/confirm: The customer pressed "confirm"
- POST /chat/cancel: The customer cancelled the proposal

Session vs. Stateless Mode:
---------------------------
With a ``session_id`` the server-held history, cart and confirmation state
are authoritative. Without one, the client sends ``history``, ``heldCart``
and ``confirmationState`` itself and gets the reconciled values back.

Validation:
-----------
- Message length is constrained by MAX_MESSAGE_LENGTH (default: 2000 chars).
- Carts are re-validated line by line and their totals recomputed.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import MAX_MESSAGE_LENGTH
from ..tasks.models import Cart, ConversationTurn, OrderReceipt, SuggestedProduct
from ..tasks.schemas import ConfirmationState


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ChatStartRequest(_CamelModel):
    """Optional scoping for a new session."""
    category: Optional[str] = Field(default=None, max_length=100)
    user_id: Optional[int] = Field(default=None, alias="userId")


class ChatStartResponse(_CamelModel):
    session_id: str
    message: str
    confirmation_state: ConfirmationState = Field(alias="confirmationState")


class ChatMessageRequest(_CamelModel):
    """One customer utterance."""
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    session_id: Optional[str] = None
    category: Optional[str] = Field(default=None, alias="categoryFilter", max_length=100)
    # Stateless mode only
    history: List[ConversationTurn] = Field(default_factory=list)
    held_cart: Cart = Field(default_factory=Cart.empty, alias="heldCart")
    confirmation_state: ConfirmationState = Field(
        default=ConfirmationState.ACCUMULATING, alias="confirmationState"
    )
    user_id: Optional[int] = Field(default=None, alias="userId")


class ChatActionRequest(_CamelModel):
    """Confirm or cancel button press."""
    session_id: Optional[str] = None
    # Stateless mode only
    held_cart: Cart = Field(default_factory=Cart.empty, alias="heldCart")
    confirmation_state: ConfirmationState = Field(
        default=ConfirmationState.AWAITING_CONFIRMATION, alias="confirmationState"
    )
    notes: Optional[str] = Field(default=None, max_length=500)
    user_id: Optional[int] = Field(default=None, alias="userId")


class ChatMessageResponse(_CamelModel):
    """
    The reconciled turn.

    ``orderProposal`` is the held cart after this turn (null when empty).
    ``order`` is set only when this turn committed an order.
    """
    reply: str
    suggested_products: List[SuggestedProduct] = Field(default_factory=list, alias="suggestedProducts")
    order_proposal: Optional[Cart] = Field(default=None, alias="orderProposal")
    show_confirmation: bool = Field(default=False, alias="showConfirmation")
    auto_confirm: bool = Field(default=False, alias="autoConfirm")
    confirmation_state: ConfirmationState = Field(alias="confirmationState")
    order: Optional[OrderReceipt] = None
    commit_failed: bool = Field(default=False, alias="commitFailed")
    session_id: Optional[str] = None
    # Stateless mode: the updated history for the client to keep
    history: Optional[List[ConversationTurn]] = None
