"""
Confirmation State Definitions.

This module defines the ConfirmationState enum tracked per conversation
session by the reconciliation engine.
"""

from enum import Enum


class ConfirmationState(str, Enum):
    """Where the held cart stands on its way to becoming an order."""
    ACCUMULATING = "accumulating"  # Customer is still adding or changing items
    AWAITING_CONFIRMATION = "awaiting_confirmation"  # Proposal shown, waiting for "sí"
    CONFIRMED = "confirmed"  # Commit in progress for this cart
