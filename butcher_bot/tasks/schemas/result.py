"""
Reconciliation Result.

Defines the result structure returned by the reconciliation engine for one
turn, button press or cancellation.
"""

from dataclasses import dataclass, field

from ..models import Cart, OrderReceipt, SuggestedProduct
from .phases import ConfirmationState


@dataclass
class ReconciliationResult:
    """Result from processing one turn."""
    reply: str
    cart: Cart
    state: ConfirmationState
    suggested_products: list[SuggestedProduct] = field(default_factory=list)
    order: OrderReceipt | None = None  # Set when this turn committed an order
    commit_failed: bool = False  # Commit attempted and failed; cart kept for retry
    auto_confirm: bool = False

    @property
    def show_confirmation(self) -> bool:
        return self.state == ConfirmationState.AWAITING_CONFIRMATION
