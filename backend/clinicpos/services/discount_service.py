# Overview: Line arithmetic; validates discounts and computes line amounts in fixed-point decimal.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import DiscountExceedsPrice, InvalidDiscount, NonPositiveLineTotal
from ..money import HUNDRED, ZERO, round2, to_decimal
from ..validation import DISCOUNT_NOMINAL, DISCOUNT_NONE, DISCOUNT_PERCENT, DISCOUNT_TYPES


@dataclass(frozen=True)
class LineAmounts:
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    cost_total: Decimal
    profit: Decimal


def compute_line(
    unit_price: Decimal,
    qty: int,
    discount_type: str | None,
    discount_value: Decimal | None,
    cost_price: Decimal,
) -> LineAmounts:
    """
    Compute one cart line.

    - subtotal = unit_price * qty
    - discount = subtotal * value / 100 (PERCENT), value * qty (NOMINAL is
      per unit), 0 (NONE)
    - total = subtotal - discount, which must stay > 0
    - cost_total = cost_price * qty; profit = total - cost_total (may be negative)

    Every intermediate is rounded to cents HALF_UP where it is computed.
    """
    dtype = (discount_type or DISCOUNT_NONE).upper()
    if dtype not in DISCOUNT_TYPES:
        raise InvalidDiscount(f"Unknown discount type {discount_type}")

    dvalue = round2(to_decimal(discount_value if discount_value is not None else ZERO, field="discount_value"))
    if dvalue < 0:
        raise InvalidDiscount("Discount value must not be negative", {"discount_value": str(dvalue)})

    q = Decimal(qty)
    subtotal = round2(round2(Decimal(unit_price)) * q)

    if dtype == DISCOUNT_PERCENT:
        discount = round2(subtotal * dvalue / HUNDRED)
    elif dtype == DISCOUNT_NOMINAL:
        discount = round2(dvalue * q)
    else:
        discount = ZERO

    # A zero-priced line falls through to the line total check below
    if discount > 0 and discount >= subtotal:
        raise DiscountExceedsPrice(
            "Discount must be less than the line subtotal",
            details={"subtotal": str(subtotal), "discount": str(discount)},
        )

    total = round2(subtotal - discount)
    if total <= 0:
        raise NonPositiveLineTotal(
            "Line total must be greater than 0",
            details={"subtotal": str(subtotal), "discount": str(discount), "total": str(total)},
        )

    cost_total = round2(round2(Decimal(cost_price)) * q)
    profit = round2(total - cost_total)

    return LineAmounts(
        subtotal=subtotal,
        discount=discount,
        total=total,
        cost_total=cost_total,
        profit=profit,
    )
