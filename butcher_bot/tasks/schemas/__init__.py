"""
Reconciliation Engine Schemas.

This package contains the confirmation state enum and the result structure
returned by the reconciliation engine.
"""

from .phases import ConfirmationState
from .result import ReconciliationResult

__all__ = [
    "ConfirmationState",
    "ReconciliationResult",
]
