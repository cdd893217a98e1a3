# Overview: Idempotent bootstrap of reference data the checkout core reads.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import CustomerCategory, TherapistLevel, User
from .settings_service import ensure_store_settings


DEFAULT_CATEGORIES = (
    ("PASIEN", "Pasien"),
    ("RESELLER", "Reseller"),
    ("MEMBER", "Member"),
    ("AGEN", "Agen"),
)

# name, default, min, max
DEFAULT_THERAPIST_LEVELS = (
    ("Senior", Decimal("10"), Decimal("5"), Decimal("50")),
    ("Junior", Decimal("5"), Decimal("3"), Decimal("30")),
)

DEFAULT_USERS = (
    ("admin", "Admin", "ADMIN"),
    ("kasir", "Kasir 1", "CASHIER"),
)


def seed_defaults(store_name: str | None = None) -> dict:
    """
    Create default categories, therapist levels, operators and the settings row.

    Safe to call repeatedly: existing rows are left untouched.
    """
    created = {"categories": 0, "therapist_levels": 0, "users": 0}

    for code, name in DEFAULT_CATEGORIES:
        if db.session.query(CustomerCategory).filter_by(code=code).first() is None:
            db.session.add(CustomerCategory(code=code, name=name))
            created["categories"] += 1

    for name, default, low, high in DEFAULT_THERAPIST_LEVELS:
        if db.session.query(TherapistLevel).filter_by(name=name).first() is None:
            db.session.add(TherapistLevel(
                name=name,
                default_commission=default,
                min_commission=low,
                max_commission=high,
            ))
            created["therapist_levels"] += 1

    for username, name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first() is None:
            db.session.add(User(username=username, name=name, role=role))
            created["users"] += 1

    ensure_store_settings(store_name)
    db.session.commit()
    return created
