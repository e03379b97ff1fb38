"""
Conversation Turn Service
=========================

Wires one turn together: inventory facts from the store, the utterance
interpreter, the reconciliation engine and the order commit service. Routes
own the session bookkeeping (locking, loading, saving); the functions here
work on plain values so the stateless chat mode can use them too.

The inventory is loaded lazily, inside the interpret step, so a customer
saying "sí" to a pending confirmation never waits on the catalog or the model.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..inventory import build_inventory_context, load_inventory_facts
from ..tasks.interpreter import INVENTORY_UNAVAILABLE_REPLY, UtteranceInterpreter, degraded_result
from ..tasks.models import Cart, ConversationTurn, Speaker, TurnResult
from ..tasks.schemas import ConfirmationState, ReconciliationResult
from ..tasks.state_machine import ReconciliationEngine
from .order import commit_cart


logger = logging.getLogger(__name__)


@dataclass
class TurnContext:
    """Everything the engine needs to know about the conversation so far."""
    cart: Cart
    state: ConfirmationState
    history: List[ConversationTurn] = field(default_factory=list)
    category: Optional[str] = None
    user_id: Optional[int] = None
    guest_id: Optional[str] = None
    notes: Optional[str] = None


def _engine_for(db: Session, ctx: TurnContext) -> ReconciliationEngine:
    commit = partial(
        commit_cart,
        db,
        notes=ctx.notes,
        user_id=ctx.user_id,
        guest_id=ctx.guest_id,
    )
    return ReconciliationEngine(commit=commit, cart=ctx.cart, state=ctx.state)


def _interpret_with_inventory(
    db: Session,
    interpreter: UtteranceInterpreter,
    utterance: str,
    ctx: TurnContext,
    cart: Cart,
) -> TurnResult:
    try:
        facts = load_inventory_facts(db, ctx.category)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Could not load inventory for category %r", ctx.category, exc_info=True)
        return degraded_result(INVENTORY_UNAVAILABLE_REPLY)

    return interpreter.interpret(
        utterance,
        ctx.history,
        build_inventory_context(facts),
        cart=cart,
        category=ctx.category,
    )


def run_turn(
    db: Session,
    interpreter: UtteranceInterpreter,
    utterance: str,
    ctx: TurnContext,
) -> ReconciliationResult:
    """Process one customer utterance and append both sides to ``ctx.history``."""
    engine = _engine_for(db, ctx)
    result = engine.process_turn(
        utterance,
        partial(_interpret_with_inventory, db, interpreter, utterance, ctx),
    )
    ctx.history = ctx.history + [
        ConversationTurn(speaker=Speaker.CUSTOMER, text=utterance),
        ConversationTurn(speaker=Speaker.ASSISTANT, text=result.reply),
    ]
    ctx.cart = result.cart
    ctx.state = result.state
    return result


def run_confirm(db: Session, ctx: TurnContext) -> ReconciliationResult:
    """The confirm button: commit the held cart."""
    result = _engine_for(db, ctx).confirm()
    ctx.history = ctx.history + [ConversationTurn(speaker=Speaker.ASSISTANT, text=result.reply)]
    ctx.cart = result.cart
    ctx.state = result.state
    return result


def run_cancel(db: Session, ctx: TurnContext) -> ReconciliationResult:
    """The cancel button: drop the proposal and keep shopping."""
    result = _engine_for(db, ctx).cancel()
    ctx.history = ctx.history + [ConversationTurn(speaker=Speaker.ASSISTANT, text=result.reply)]
    ctx.cart = result.cart
    ctx.state = result.state
    return result


def context_from_session(data: dict) -> TurnContext:
    """Rebuild a TurnContext from stored session state."""
    return TurnContext(
        cart=Cart.model_validate(data.get("cart") or {}),
        state=ConfirmationState(data.get("confirmation_state") or ConfirmationState.ACCUMULATING.value),
        history=[ConversationTurn.model_validate(t) for t in data.get("history") or []],
        category=data.get("category"),
        user_id=data.get("user_id"),
        guest_id=data.get("guest_id"),
    )


def context_into_session(ctx: TurnContext, data: dict) -> dict:
    """Write the engine's outcome back into stored session state."""
    data["cart"] = ctx.cart.to_wire()
    data["confirmation_state"] = ctx.state.value
    data["history"] = [t.to_wire() for t in ctx.history]
    return data
