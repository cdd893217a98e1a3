# Overview: Checkout request parsing; turns raw JSON into typed, already-validated cart lines.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from .errors import (
    EmptyCart,
    IdempotencyKeyRequired,
    InvalidDiscount,
    InvalidPayment,
    InvalidQuantity,
    MissingReference,
    TherapistMissing,
    ValidationError,
)
from .money import ZERO, to_money


DISCOUNT_NONE = "NONE"
DISCOUNT_PERCENT = "PERCENT"
DISCOUNT_NOMINAL = "NOMINAL"
DISCOUNT_TYPES = (DISCOUNT_NONE, DISCOUNT_PERCENT, DISCOUNT_NOMINAL)

MAX_SESSION_ID_LENGTH = 128


@dataclass(frozen=True)
class ProductLine:
    """Cart line selling a stocked product."""
    product_id: int
    qty: int
    discount_type: str = DISCOUNT_NONE
    discount_value: Decimal = ZERO

    type = "PRODUCT"


@dataclass(frozen=True)
class TreatmentLine:
    """Cart line selling a treatment performed by a primary therapist (and optional assistant)."""
    treatment_id: int
    therapist_id: int
    qty: int
    assistant_id: int | None = None
    discount_type: str = DISCOUNT_NONE
    discount_value: Decimal = ZERO

    type = "TREATMENT"


CartLine = Union[ProductLine, TreatmentLine]


@dataclass(frozen=True)
class CheckoutRequest:
    items: tuple[CartLine, ...]
    payment_method: str
    paid_amount: Decimal
    checkout_session_id: str
    member_code: str | None = None
    category_code: str | None = None

    def product_quantities(self) -> dict[int, int]:
        """Requested quantity per product across all product lines."""
        totals: dict[int, int] = {}
        for line in self.items:
            if isinstance(line, ProductLine):
                totals[line.product_id] = totals.get(line.product_id, 0) + line.qty
        return totals

    def diagnostic_shape(self) -> dict:
        return {
            "member_code": self.member_code,
            "category_code": self.category_code,
            "items_count": len(self.items),
            "payment_method": self.payment_method,
            "paid_amount": str(self.paid_amount),
            "checkout_session_id": self.checkout_session_id,
        }


def _pick(data: dict, *keys: str) -> Any:
    # Accept snake_case and the camelCase names used by the POS client
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _coerce_id(value: Any, field: str, index: int) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise MissingReference(f"items[{index}].{field} must be an integer id")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise MissingReference(f"items[{index}].{field} must be an integer id")


def _coerce_qty(value: Any, index: int) -> int:
    # Reject bools and floats explicitly; 1.5 units is not a sellable quantity
    if isinstance(value, bool) or value is None:
        raise InvalidQuantity(f"items[{index}].qty must be a positive integer", {"index": index})
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise InvalidQuantity(f"items[{index}].qty must be a positive integer", {"index": index})
        value = int(stripped)
    if not isinstance(value, int):
        raise InvalidQuantity(f"items[{index}].qty must be a positive integer", {"index": index})
    if value <= 0:
        raise InvalidQuantity(f"items[{index}].qty must be greater than 0", {"index": index, "qty": value})
    return value


def parse_discount(discount_type: Any, discount_value: Any, *, index: int | None = None) -> tuple[str, Decimal]:
    where = f"items[{index}]." if index is not None else ""
    dtype = (_optional_str(discount_type) or DISCOUNT_NONE).upper()
    if dtype not in DISCOUNT_TYPES:
        raise InvalidDiscount(f"{where}discount_type must be one of {', '.join(DISCOUNT_TYPES)}")

    if dtype == DISCOUNT_NONE:
        return dtype, ZERO

    if discount_value is None:
        dvalue = ZERO
    else:
        try:
            dvalue = to_money(discount_value, field=f"{where}discount_value")
        except ValueError as exc:
            raise InvalidDiscount(str(exc))
    if dvalue < 0:
        raise InvalidDiscount(f"{where}discount_value must not be negative", {"discount_value": str(dvalue)})
    return dtype, dvalue


def _parse_line(raw: Any, index: int) -> CartLine:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    item_type = (_optional_str(raw.get("type")) or "").upper()
    qty = _coerce_qty(raw.get("qty", raw.get("quantity")), index)
    discount_type, discount_value = parse_discount(
        _pick(raw, "discount_type", "discountType"),
        _pick(raw, "discount_value", "discountValue"),
        index=index,
    )

    if item_type == "PRODUCT":
        product_id = _coerce_id(_pick(raw, "product_id", "productId"), "product_id", index)
        if product_id is None:
            raise MissingReference(f"items[{index}]: product line requires product_id", {"index": index})
        return ProductLine(
            product_id=product_id,
            qty=qty,
            discount_type=discount_type,
            discount_value=discount_value,
        )

    if item_type == "TREATMENT":
        treatment_id = _coerce_id(_pick(raw, "treatment_id", "treatmentId"), "treatment_id", index)
        if treatment_id is None:
            raise MissingReference(f"items[{index}]: treatment line requires treatment_id", {"index": index})
        therapist_id = _coerce_id(_pick(raw, "therapist_id", "therapistId"), "therapist_id", index)
        if therapist_id is None:
            raise TherapistMissing(f"items[{index}]: treatment line requires a therapist", {"index": index})
        return TreatmentLine(
            treatment_id=treatment_id,
            therapist_id=therapist_id,
            assistant_id=_coerce_id(_pick(raw, "assistant_id", "assistantId"), "assistant_id", index),
            qty=qty,
            discount_type=discount_type,
            discount_value=discount_value,
        )

    raise ValidationError(f"items[{index}].type must be PRODUCT or TREATMENT", {"index": index})


def parse_checkout_request(data: dict | None) -> CheckoutRequest:
    """
    Validate a raw checkout payload.

    Everything rejected here is rejected before any database work: empty
    cart, missing idempotency key, non-positive quantities, lines missing
    their product/treatment/therapist reference, malformed discounts or
    payment fields.
    """
    data = data or {}

    raw_items = data.get("items")
    if not raw_items:
        raise EmptyCart("Cart is empty")
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    session_id = _optional_str(_pick(data, "checkout_session_id", "checkoutSessionId"))
    if not session_id:
        raise IdempotencyKeyRequired("checkout_session_id is required")
    if len(session_id) > MAX_SESSION_ID_LENGTH:
        raise IdempotencyKeyRequired(f"checkout_session_id must be at most {MAX_SESSION_ID_LENGTH} characters")

    items = tuple(_parse_line(raw, i) for i, raw in enumerate(raw_items))

    payment_method = _optional_str(_pick(data, "payment_method", "paymentMethod"))
    if not payment_method:
        raise InvalidPayment("payment_method is required")

    raw_paid = _pick(data, "paid_amount", "paidAmount")
    if raw_paid is None:
        raise InvalidPayment("paid_amount is required")
    try:
        paid_amount = to_money(raw_paid, field="paid_amount")
    except ValueError as exc:
        raise InvalidPayment(str(exc))
    if paid_amount < 0:
        raise InvalidPayment("paid_amount must not be negative")

    return CheckoutRequest(
        items=items,
        payment_method=payment_method.upper(),
        paid_amount=paid_amount,
        checkout_session_id=session_id,
        member_code=_optional_str(_pick(data, "member_code", "memberCode")),
        category_code=_optional_str(_pick(data, "category_code", "categoryCode")),
    )
