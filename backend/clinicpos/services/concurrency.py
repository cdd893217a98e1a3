# Overview: Service-layer operations for concurrency; row locks, unit-of-work setup and bounded retry.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_unit() takes the
    database write lock up front instead.
    """
    return query.with_for_update()


def begin_write_unit() -> None:
    """
    Prepare the current session for a serialized write unit of work.

    - SQLite: BEGIN IMMEDIATE takes the RESERVED lock now, so concurrent
      writers queue on the busy timeout instead of failing at commit.
    - PostgreSQL: bound every lock wait in this transaction.
    """
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = int(current_app.config.get("CHECKOUT_LOCK_TIMEOUT_MS", 5000))
        db.session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). When attempts are exhausted the failure
    surfaces as ConcurrencyConflict, which callers may safely retry.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise ConcurrencyConflict(
                    "Checkout could not acquire its locks; retry the same request",
                    details={"attempts": attempts},
                ) from exc
            logger.warning("Concurrency failure on attempt %s/%s: %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
    raise ConcurrencyConflict("Checkout was not attempted", details={"attempts": attempts})
