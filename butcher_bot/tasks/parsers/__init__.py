"""
Parsers Package.

Deterministic (regex and phrase-set) matchers used by the reconciliation
engine to interpret short utterances without a model round trip.

Exports:
- Constants: Confirmation and finalization phrase patterns, quantity patterns
- Deterministic Parsers: Text normalization, phrase matchers, quantity parsing
"""

from .constants import (
    CONFIRMATION_PATTERN,
    FINALIZATION_EXACT_PATTERN,
    FINALIZATION_SUBSTRING_PATTERN,
)

from .deterministic import (
    normalize_utterance,
    is_confirmation_phrase,
    is_finalization_phrase,
    parse_quantity_kg,
)

__all__ = [
    "CONFIRMATION_PATTERN",
    "FINALIZATION_EXACT_PATTERN",
    "FINALIZATION_SUBSTRING_PATTERN",
    "normalize_utterance",
    "is_confirmation_phrase",
    "is_finalization_phrase",
    "parse_quantity_kg",
]
