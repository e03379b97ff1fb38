"""
Chat Routes for Butcher Bot
===========================

Customer-facing conversational ordering endpoints.

Endpoints:
----------
- POST /chat/start: Start a new chat session
- POST /chat/message: Send a message, get the reconciled turn back
- POST /chat/confirm: Confirm the held cart (button)
- POST /chat/cancel: Cancel the held cart (button)

Conversation Flow:
------------------
1. Customer calls /chat/start to get a session_id and greeting
2. Each /chat/message runs the utterance through the reconciliation engine:
   the model proposes the cart, deterministic phrase matching decides when
   to ask for confirmation
3. "sí" (or the confirm button) while a proposal is pending commits the
   order; the reply carries the order number
4. A failed commit keeps the cart and asks the customer to try again

Session Management:
-------------------
Turns for one session are serialized with a per-session lock and saved with
a compare-and-swap on the session version; a lost race answers 409.
Clients that keep their own history can omit session_id and send
history/heldCart/confirmationState instead.

Rate Limiting:
--------------
All chat endpoints are rate limited (default: 30/minute per caller).
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..config import get_rate_limit_chat
from ..db import get_db
from ..errors import SessionConflictError
from ..identity import caller_user_id, guest_identity
from ..rate_limit import limiter
from ..schemas.chat import (
    ChatActionRequest,
    ChatMessageRequest,
    ChatMessageResponse,
    ChatStartRequest,
    ChatStartResponse,
)
from ..services.conversation import (
    TurnContext,
    context_from_session,
    context_into_session,
    run_cancel,
    run_confirm,
    run_turn,
)
from ..services.session import (
    create_session,
    get_session,
    new_session_state,
    save_session,
    session_lock,
)
from ..tasks.interpreter import UtteranceInterpreter
from ..tasks.models import ConversationTurn, Speaker
from ..tasks.schemas import ConfirmationState, ReconciliationResult

logger = logging.getLogger(__name__)

# Router definition
chat_router = APIRouter(prefix="/chat", tags=["Chat"])

GREETING = "¡Hola! Soy Carnicero IA 🥩 ¿Qué te pongo hoy?"
GREETING_WITH_CATEGORY = (
    "¡Hola! Soy Carnicero IA 🥩 Te atiendo en la sección de {category}. ¿Qué te pongo hoy?"
)


def get_interpreter() -> UtteranceInterpreter:
    """Dependency: the utterance interpreter (overridden in tests)."""
    return UtteranceInterpreter()


# =============================================================================
# Helper Functions
# =============================================================================

def _to_response(
    result: ReconciliationResult,
    session_id: Optional[str] = None,
    history: Optional[List[ConversationTurn]] = None,
) -> ChatMessageResponse:
    return ChatMessageResponse(
        reply=result.reply,
        suggested_products=result.suggested_products,
        order_proposal=None if result.cart.is_empty else result.cart,
        show_confirmation=result.show_confirmation,
        auto_confirm=result.auto_confirm,
        confirmation_state=result.state,
        order=result.order,
        commit_failed=result.commit_failed,
        session_id=session_id,
        history=history,
    )


def _run_in_session(db: Session, session_id: str, step, notes: Optional[str] = None) -> ChatMessageResponse:
    """Load, run ``step(ctx)``, compare-and-swap save. Serialized per session."""
    with session_lock(session_id):
        record = get_session(db, session_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Session not found")

        ctx = context_from_session(record.data)
        ctx.notes = notes
        result = step(ctx)

        try:
            save_session(db, session_id, context_into_session(ctx, record.data), record.version)
        except SessionConflictError as e:
            if result.order is not None:
                logger.warning(
                    "Order %s committed but session %s lost the save race",
                    result.order.order_number, session_id,
                )
            raise HTTPException(
                status_code=409,
                detail="This conversation was updated from another request. Please retry.",
            ) from e

    return _to_response(result, session_id=session_id)


def _stateless_context(request: Request, user_id: Optional[int], **kwargs) -> TurnContext:
    user_id = user_id if user_id is not None else caller_user_id(request)
    return TurnContext(
        user_id=user_id,
        guest_id=None if user_id is not None else guest_identity(request),
        **kwargs,
    )


# =============================================================================
# Chat Endpoints
# =============================================================================

@chat_router.post("/start", response_model=ChatStartResponse)
@limiter.limit(get_rate_limit_chat)
def chat_start(
    request: Request,
    payload: Optional[ChatStartRequest] = None,
    db: Session = Depends(get_db),
) -> ChatStartResponse:
    """Start a new chat session, optionally scoped to one catalog category."""
    payload = payload or ChatStartRequest()
    user_id = payload.user_id if payload.user_id is not None else caller_user_id(request)
    guest_id = None if user_id is not None else f"guest-{uuid.uuid4().hex[:12]}"

    if payload.category:
        greeting = GREETING_WITH_CATEGORY.format(category=payload.category)
    else:
        greeting = GREETING

    state = new_session_state(category=payload.category, user_id=user_id, guest_id=guest_id)
    state["history"].append(ConversationTurn(speaker=Speaker.ASSISTANT, text=greeting).to_wire())
    record = create_session(db, state)

    logger.info("Chat session %s started (category: %s)", record.session_id, payload.category or "all")
    return ChatStartResponse(
        session_id=record.session_id,
        message=greeting,
        confirmation_state=ConfirmationState.ACCUMULATING,
    )


@chat_router.post("/message", response_model=ChatMessageResponse)
@limiter.limit(get_rate_limit_chat)
def chat_message(
    request: Request,
    req: ChatMessageRequest,
    db: Session = Depends(get_db),
    interpreter: UtteranceInterpreter = Depends(get_interpreter),
) -> ChatMessageResponse:
    """One customer utterance through the reconciliation engine."""
    if req.session_id:
        return _run_in_session(
            db,
            req.session_id,
            lambda ctx: run_turn(db, interpreter, req.message, ctx),
        )

    ctx = _stateless_context(
        request,
        req.user_id,
        cart=req.held_cart,
        state=req.confirmation_state,
        history=list(req.history),
        category=req.category,
    )
    result = run_turn(db, interpreter, req.message, ctx)
    return _to_response(result, history=ctx.history)


@chat_router.post("/confirm", response_model=ChatMessageResponse)
@limiter.limit(get_rate_limit_chat)
def chat_confirm(
    request: Request,
    req: ChatActionRequest,
    db: Session = Depends(get_db),
) -> ChatMessageResponse:
    """The customer pressed the confirm button on the proposal."""
    if req.session_id:
        return _run_in_session(db, req.session_id, lambda ctx: run_confirm(db, ctx), notes=req.notes)

    ctx = _stateless_context(
        request,
        req.user_id,
        cart=req.held_cart,
        state=req.confirmation_state,
        notes=req.notes,
    )
    return _to_response(run_confirm(db, ctx))


@chat_router.post("/cancel", response_model=ChatMessageResponse)
@limiter.limit(get_rate_limit_chat)
def chat_cancel(
    request: Request,
    req: ChatActionRequest,
    db: Session = Depends(get_db),
) -> ChatMessageResponse:
    """The customer cancelled the proposal; the cart is cleared."""
    if req.session_id:
        return _run_in_session(db, req.session_id, lambda ctx: run_cancel(db, ctx))

    ctx = _stateless_context(request, req.user_id, cart=req.held_cart, state=req.confirmation_state)
    return _to_response(run_cancel(db, ctx))
