# money helpers: every delivery cost is a Decimal, rounded like the dashboard shows it

from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional


ZERO = Decimal("0")
_Q_CENTS = Decimal("0.01")


def to_decimal(val: Any) -> Optional[Decimal]:
    if val is None:
        return None
    if isinstance(val, Decimal):
        return val
    if isinstance(val, bool):
        return None
    try:
        return Decimal(str(val))
    except (InvalidOperation, ValueError, TypeError):
        return None


def round_cents(val: Optional[Decimal]) -> Optional[Decimal]:
    """Currency precision, half-up (1.005 -> 1.01)."""
    if val is None:
        return None
    return val.quantize(_Q_CENTS, rounding=ROUND_HALF_UP)


def or_zero(val: Any) -> Decimal:
    d = to_decimal(val)
    return d if d is not None else ZERO
