# Overview: Fixed-point money helpers shared by pricing, discount, commission and checkout.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
"""
Money Invariants (authoritative)

- Every monetary value is a decimal.Decimal; binary floats never enter a
  computation. Floats arriving from JSON are converted through str().
- Rounding is HALF_UP to 2 places and happens at every computation step,
  not only when totals are presented.
- Serialized amounts are fixed-point strings ("150.00").
"""

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def round2(amount: Decimal) -> Decimal:
    """Round to cents, exact halves away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """
    Coerce user or database input into Decimal.

    Accepts Decimal, int, str and float (floats go through their shortest
    repr, so 0.1 becomes Decimal("0.1") and not its binary expansion).
    Booleans, NaN and infinities are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise ValueError(f"{field} must be a number")

    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def to_money(value, *, field: str = "amount") -> Decimal:
    return round2(to_decimal(value, field=field))


def money_str(amount: Decimal | None) -> str | None:
    if amount is None:
        return None
    return str(round2(Decimal(amount)))
