# backend/clinicpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/clinicpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///clinicpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pricing tier used when a cart has neither member nor category code
    DEFAULT_CATEGORY_CODE = os.environ.get("DEFAULT_CATEGORY_CODE", "PASIEN")

    # Fallback when the store settings row carries no commission percent
    DEFAULT_COMMISSION_PERCENT = os.environ.get("DEFAULT_COMMISSION_PERCENT", "10")

    # Checkout unit of work: lock wait bound and bounded retry on lock failures
    CHECKOUT_LOCK_TIMEOUT_MS = int(os.environ.get("CHECKOUT_LOCK_TIMEOUT_MS", "5000"))
    CHECKOUT_RETRY_ATTEMPTS = int(os.environ.get("CHECKOUT_RETRY_ATTEMPTS", "3"))
    CHECKOUT_RETRY_BACKOFF = float(os.environ.get("CHECKOUT_RETRY_BACKOFF", "0.1"))
