# Overview: Store-wide settings resolution.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import StoreSettings
from ..models.settings import STORE_SETTINGS_ID
from ..money import to_decimal


def get_store_settings() -> StoreSettings | None:
    return db.session.get(StoreSettings, STORE_SETTINGS_ID)


def ensure_store_settings(store_name: str | None = None) -> StoreSettings:
    """Create the settings row if missing. Safe to call repeatedly (idempotent)."""
    settings = get_store_settings()
    if settings:
        return settings
    settings = StoreSettings(id=STORE_SETTINGS_ID)
    if store_name:
        settings.store_name = store_name
    db.session.add(settings)
    db.session.flush()
    return settings


def get_default_commission_percent() -> Decimal:
    """
    Store-wide default commission percent.

    The settings row wins; DEFAULT_COMMISSION_PERCENT is the fallback
    when the row is missing or carries no value.
    """
    settings = get_store_settings()
    if settings is not None and settings.commission_default_percent is not None:
        return to_decimal(settings.commission_default_percent, field="commission_default_percent")
    return to_decimal(
        current_app.config.get("DEFAULT_COMMISSION_PERCENT", "10"),
        field="DEFAULT_COMMISSION_PERCENT",
    )


def set_default_commission_percent(percent, user_id: int | None = None) -> StoreSettings:
    value = to_decimal(percent, field="commission_default_percent")
    if value < 0 or value > 100:
        raise ValueError("commission_default_percent must be between 0 and 100")
    settings = ensure_store_settings()
    settings.commission_default_percent = value
    settings.updated_by_user_id = user_id
    db.session.commit()
    return settings
