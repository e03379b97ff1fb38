"""
Deterministic Parsing Functions (no LLM).

Pure functions of locale-normalized text. The confirmation and finalization
matchers are the single source of truth for those heuristics: the
reconciliation engine calls them on the server, and clients only reflect the
state the server reports back.
"""

import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Optional

from .constants import (
    CONFIRMATION_PATTERN,
    FINALIZATION_EXACT_PATTERN,
    FINALIZATION_SUBSTRING_PATTERN,
    GRAM_UNITS,
    QUANTITY_PATTERN,
    WORD_QUANTITIES_KG,
)

_PUNCTUATION = re.compile(r"[¿?¡!.,;:\"'()\[\]…\-–—]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_utterance(text: Optional[str]) -> str:
    """Lowercase, strip diacritics and punctuation, collapse whitespace.

    >>> normalize_utterance("  ¡Sí, DALE! ")
    'si dale'
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    without_marks = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    lowered = without_marks.lower()
    lowered = _PUNCTUATION.sub(" ", lowered)
    return _WHITESPACE.sub(" ", lowered).strip()


def is_confirmation_phrase(text: Optional[str]) -> bool:
    """True when the whole utterance is an affirmative ("sí", "dale", "ok, confirmo")."""
    normalized = normalize_utterance(text)
    if not normalized:
        return False
    return CONFIRMATION_PATTERN.match(normalized) is not None


def is_finalization_phrase(text: Optional[str]) -> bool:
    """True when the customer signals they are done adding items."""
    normalized = normalize_utterance(text)
    if not normalized:
        return False
    if FINALIZATION_EXACT_PATTERN.match(normalized):
        return True
    return FINALIZATION_SUBSTRING_PATTERN.search(normalized) is not None


def parse_quantity_kg(quantity: Optional[str]) -> Optional[Decimal]:
    """Parse a free-form quantity into kilograms.

    Accepts "0.5kg", "0,5 kg", "500g", "2 kilos", "medio kilo" and bare
    numbers (taken as kilograms). Returns None when nothing numeric can be
    read, or the amount is not positive.
    """
    if quantity is None:
        return None
    normalized = unicodedata.normalize("NFKC", str(quantity)).strip().lower()
    if not normalized:
        return None

    words = normalize_utterance(normalized)
    if words in WORD_QUANTITIES_KG:
        return Decimal(WORD_QUANTITIES_KG[words])

    match = QUANTITY_PATTERN.match(normalized)
    if not match:
        return None

    try:
        amount = Decimal(match.group(1).replace(",", "."))
    except InvalidOperation:
        return None

    unit = (match.group(2) or "kg").lower()
    if unit in GRAM_UNITS:
        amount = amount / Decimal(1000)

    if amount <= 0:
        return None
    return amount.quantize(Decimal("0.001"))
