"""
Intent Reconciliation Engine.

Owns the held cart and confirmation state of one conversation session and
decides, turn by turn, whether to keep accumulating, prompt for confirmation,
or commit. Deterministic phrase matching sits in front of the model so a
short "sí" or "eso es todo" never stalls the conversation.

Rules, first match wins:
1. Awaiting confirmation + confirmation phrase + non-empty cart: commit the
   held cart without asking the model.
2. Model proposes a non-empty cart: it replaces the held cart wholesale.
   autoConfirm commits it; showConfirmation or a finalization phrase moves
   to awaiting confirmation; anything else goes back to accumulating, even
   from awaiting confirmation. A changed cart is never committed by a "sí"
   given to the previous one; it must be prompted for again.
3. Model says autoConfirm without a cart: commit the held cart if it has
   lines, never an empty one.
4. Model returns a proposal with an empty item list: the cart is cleared.
   Model returns no proposal, or one whose lines were all unusable: back to
   accumulating, lines kept.
5. Finalization phrase + non-empty held cart and no prompt yet: move to
   awaiting confirmation with the held cart.
6. Otherwise the state stays as it is.

One engine instance serves one session at a time; callers serialize turns
(see services.session).
"""

import logging
from typing import Callable, Optional

from ..errors import CartValidationError, OrderCommitError
from .models import Cart, OrderReceipt, TurnResult
from .parsers import is_confirmation_phrase, is_finalization_phrase
from .schemas import ConfirmationState, ReconciliationResult

logger = logging.getLogger(__name__)

CommitFn = Callable[[Cart], OrderReceipt]
InterpretFn = Callable[[Cart], TurnResult]

ORDER_CONFIRMED_REPLY = (
    "¡Pedido confirmado! 🎉 Tu número es {order_number}. "
    "Estará listo en ~{minutes} minutos."
)
COMMIT_FAILED_REPLY = (
    "No he podido registrar tu pedido ahora mismo. Tu carrito sigue aquí; "
    "dime \"sí\" o pulsa confirmar para intentarlo de nuevo."
)
CANCELLED_REPLY = "Sin problema, he cancelado la propuesta. ¿Necesitas algo más?"
EMPTY_CART_REPLY = "Todavía no tienes nada en el pedido. ¿Qué te pongo?"


class ReconciliationEngine:
    """
    Confirmation state machine for one session.

    Args:
        commit: Persists a cart and returns the receipt. Raises
            OrderCommitError or CartValidationError on failure.
        cart: Held cart restored from the session (empty if None).
        state: Confirmation state restored from the session.
    """

    def __init__(
        self,
        commit: CommitFn,
        cart: Optional[Cart] = None,
        state: ConfirmationState = ConfirmationState.ACCUMULATING,
    ):
        self._commit = commit
        self.cart = cart if cart is not None else Cart.empty()
        self.state = ConfirmationState(state)
        # A confirmed state never outlives a commit attempt
        if self.state == ConfirmationState.CONFIRMED:
            self.state = ConfirmationState.AWAITING_CONFIRMATION

    def process_turn(self, utterance: str, interpret: InterpretFn) -> ReconciliationResult:
        """Run one customer utterance through the rules.

        ``interpret`` is only called when rule 1 does not short-circuit; it
        receives the held cart so the model sees what is already ordered.
        """
        # Rule 1
        if (
            self.state == ConfirmationState.AWAITING_CONFIRMATION
            and not self.cart.is_empty
            and is_confirmation_phrase(utterance)
        ):
            logger.info("Confirmation phrase %r accepted without model round trip", utterance)
            return self._commit_held_cart()

        turn = interpret(self.cart)
        finalizing = is_finalization_phrase(utterance)
        proposal = turn.order_proposal
        prompted = False

        if proposal is not None and not proposal.is_empty:
            # Rule 2
            self.cart = proposal
            if turn.auto_confirm:
                return self._commit_held_cart(auto_confirm=True)
            if turn.show_confirmation or finalizing:
                self.state = ConfirmationState.AWAITING_CONFIRMATION
                prompted = True
            else:
                self.state = ConfirmationState.ACCUMULATING
        elif turn.auto_confirm and not self.cart.is_empty:
            # Rule 3
            return self._commit_held_cart(auto_confirm=True)
        elif proposal is not None:
            # Rule 4, explicit empty item list
            logger.info("Assistant cleared the cart")
            self.cart = Cart.empty()
            self.state = ConfirmationState.ACCUMULATING
        elif not turn.degraded:
            # Rule 4, no proposal
            self.state = ConfirmationState.ACCUMULATING

        # Rule 5
        if not prompted and finalizing and not self.cart.is_empty:
            logger.info("Finalization phrase %r detected; prompting with held cart", utterance)
            self.state = ConfirmationState.AWAITING_CONFIRMATION

        return ReconciliationResult(
            reply=turn.reply_text,
            cart=self.cart,
            state=self.state,
            suggested_products=turn.suggested_products,
        )

    def confirm(self) -> ReconciliationResult:
        """The customer pressed the confirm button."""
        if self.cart.is_empty:
            return ReconciliationResult(reply=EMPTY_CART_REPLY, cart=self.cart, state=self.state)
        return self._commit_held_cart()

    def cancel(self) -> ReconciliationResult:
        """The customer cancelled the proposal."""
        self.cart = Cart.empty()
        self.state = ConfirmationState.ACCUMULATING
        return ReconciliationResult(reply=CANCELLED_REPLY, cart=self.cart, state=self.state)

    def _commit_held_cart(self, auto_confirm: bool = False) -> ReconciliationResult:
        self.state = ConfirmationState.CONFIRMED
        try:
            receipt = self._commit(self.cart)
        except (OrderCommitError, CartValidationError) as e:
            logger.error("Order commit failed, keeping cart for retry: %s", e)
            self.state = ConfirmationState.AWAITING_CONFIRMATION
            return ReconciliationResult(
                reply=COMMIT_FAILED_REPLY,
                cart=self.cart,
                state=self.state,
                commit_failed=True,
                auto_confirm=auto_confirm,
            )

        self.cart = Cart.empty()
        self.state = ConfirmationState.ACCUMULATING
        reply = ORDER_CONFIRMED_REPLY.format(
            order_number=receipt.order_number,
            minutes=receipt.estimated_minutes,
        )
        return ReconciliationResult(
            reply=reply,
            cart=self.cart,
            state=self.state,
            order=receipt,
            auto_confirm=auto_confirm,
        )
