"""
Conversational Ordering Core.

This package holds the pieces that turn customer utterances into orders:
- Pydantic models for carts, turns and voice results
- Deterministic phrase and quantity parsers
- Model output parsing with malformed-output recovery
- The utterance interpreter (text and voice)
- The reconciliation engine (confirmation state machine)
"""

from .models import (
    InventoryFact,
    ConversationTurn,
    Speaker,
    CartLine,
    Cart,
    SuggestedProduct,
    TurnResult,
    VoiceIntent,
    ExtractedItem,
    TranscriptionResult,
    OrderReceipt,
)
from .schemas import ConfirmationState, ReconciliationResult

__all__ = [
    "InventoryFact",
    "ConversationTurn",
    "Speaker",
    "CartLine",
    "Cart",
    "SuggestedProduct",
    "TurnResult",
    "VoiceIntent",
    "ExtractedItem",
    "TranscriptionResult",
    "OrderReceipt",
    "ConfirmationState",
    "ReconciliationResult",
]
