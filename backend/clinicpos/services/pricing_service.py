# Overview: Service-layer pricing lookups; resolves unit prices and customer categories.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import CategoryRequired, MemberInactive, MemberNotFound, PricingMissing
from ..extensions import db
from ..models import CustomerCategory, Member, Product, ProductPrice, Treatment
from ..money import round2


def resolve_price(item: Product | Treatment, category_id: int | None) -> Decimal:
    """
    Unit price of a catalog item for a customer category.

    - Product: the (product, category) price row. A missing row fails with
      PricingMissing; it never defaults to zero.
    - Treatment: the single sell price. The category is accepted for audit
      symmetry and has no effect.
    """
    if isinstance(item, Treatment):
        if item.sell_price is None:
            raise PricingMissing(
                f"Treatment {item.name} has no sell price",
                details={"treatment_id": item.id},
            )
        return round2(Decimal(item.sell_price))

    if isinstance(item, Product):
        row = (
            db.session.query(ProductPrice)
            .filter_by(product_id=item.id, category_id=category_id)
            .first()
        )
        if row is None or row.price is None:
            raise PricingMissing(
                f"No price for product {item.name} in category {category_id}",
                details={"product_id": item.id, "category_id": category_id},
            )
        return round2(Decimal(row.price))

    raise TypeError(f"Cannot price {type(item).__name__}")


def get_category_by_code(code: str) -> CustomerCategory | None:
    return db.session.query(CustomerCategory).filter_by(code=code.strip().upper()).first()


def resolve_category(
    member_code: str | None,
    category_code: str | None,
) -> tuple[CustomerCategory, Member | None]:
    """
    Effective pricing category for a cart.

    A member cart always uses the member's category; any client-supplied
    category code is ignored, and an inactive member is rejected. Otherwise
    the category code is resolved, falling back to DEFAULT_CATEGORY_CODE.
    """
    if member_code:
        member = db.session.query(Member).filter_by(member_code=member_code).first()
        if member is None:
            raise MemberNotFound(f"Member {member_code} not found", details={"member_code": member_code})
        if not member.is_active:
            raise MemberInactive(f"Member {member_code} is inactive", details={"member_code": member_code})

        category = db.session.get(CustomerCategory, member.category_id)
        if category is None:
            raise CategoryRequired(
                f"Member {member_code} has no valid category",
                details={"member_code": member_code},
            )
        return category, member

    code = category_code or current_app.config.get("DEFAULT_CATEGORY_CODE", "PASIEN")
    category = get_category_by_code(code)
    if category is None:
        raise CategoryRequired(f"Customer category {code} not found", details={"category_code": code})
    return category, None
