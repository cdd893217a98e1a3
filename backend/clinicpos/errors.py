# Overview: Checkout error taxonomy; every failure carries a stable code and details.

from __future__ import annotations


class CheckoutError(Exception):
    """Base for checkout core failures."""
    code = "CHECKOUT_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


# =============================================================================
# Validation: rejected before any unit of work opens
# =============================================================================

class ValidationError(CheckoutError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    http_status = 400


class EmptyCart(ValidationError):
    code = "EMPTY_CART"


class IdempotencyKeyRequired(ValidationError):
    code = "IDEMPOTENCY_KEY_REQUIRED"


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"


class MissingReference(ValidationError):
    code = "MISSING_REFERENCE"


class TherapistMissing(ValidationError):
    code = "THERAPIST_MISSING"


class InvalidDiscount(ValidationError):
    code = "INVALID_DISCOUNT"


class InvalidPayment(ValidationError):
    code = "INVALID_PAYMENT"


# =============================================================================
# Business rules: abort and roll back the unit of work
# =============================================================================

class BusinessRuleViolation(CheckoutError):
    """422-level domain rule failure; the input must change before retrying."""
    code = "BUSINESS_RULE_VIOLATION"
    http_status = 422


class PricingMissing(BusinessRuleViolation):
    code = "PRICING_MISSING"


class InsufficientStock(BusinessRuleViolation):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, available: int, requested: int, name: str | None = None):
        label = name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}: available {available}, requested {requested}",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class ItemNotFound(BusinessRuleViolation):
    code = "ITEM_NOT_FOUND"


class ItemInactive(BusinessRuleViolation):
    code = "ITEM_INACTIVE"


class TherapistInactive(BusinessRuleViolation):
    code = "THERAPIST_INACTIVE"


class DiscountExceedsPrice(BusinessRuleViolation):
    code = "DISCOUNT_EXCEEDS_PRICE"


class NonPositiveLineTotal(BusinessRuleViolation):
    code = "NON_POSITIVE_LINE_TOTAL"


class NonPositiveTotal(BusinessRuleViolation):
    code = "NON_POSITIVE_TOTAL"


class CategoryRequired(BusinessRuleViolation):
    code = "CATEGORY_REQUIRED"


class CategoryMismatch(BusinessRuleViolation):
    code = "CATEGORY_MISMATCH"


class MemberNotFound(BusinessRuleViolation):
    code = "MEMBER_NOT_FOUND"


class MemberInactive(BusinessRuleViolation):
    code = "MEMBER_INACTIVE"


class CommissionOutOfRange(BusinessRuleViolation):
    code = "COMMISSION_OUT_OF_RANGE"


# =============================================================================
# Concurrency: safe to retry with the same idempotency key
# =============================================================================

class ConcurrencyConflict(CheckoutError):
    """Lock timeout or serialization failure; the identical request may be retried."""
    code = "CONCURRENCY_CONFLICT"
    http_status = 409

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryable"] = True
        return body


class ImmutableRecordError(Exception):
    """Raised when code tries to update or delete an append-only record."""
