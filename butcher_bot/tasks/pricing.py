"""
Money helpers for cart lines and order totals.

All amounts are Decimal euros quantized to cents with ROUND_HALF_UP. The
upstream model and clients send prices as numbers or strings ("24.45",
"24,45 €"); anything that cannot be read as a non-negative amount is None.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_money(value: Any) -> Optional[Decimal]:
    """Read a price from a number or string, or return None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.replace("€", "").replace("EUR", "").strip().replace(",", ".")
        if not cleaned:
            return None
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None

    if not amount.is_finite() or amount < 0:
        return None
    return quantize_money(amount)


def sum_subtotals(subtotals: Iterable[Decimal]) -> Decimal:
    """Authoritative cart total: the sum of line subtotals, in cents."""
    total = ZERO
    for subtotal in subtotals:
        total += subtotal
    return quantize_money(total)


def line_subtotal(unit_price: Decimal, quantity_kg: Decimal) -> Decimal:
    """Price of ``quantity_kg`` kilograms at ``unit_price`` per kilogram."""
    return quantize_money(unit_price * quantity_kg)
