# Overview: Best-effort diagnostics sink for rejected checkouts.

from __future__ import annotations

from flask import current_app
from sqlalchemy import insert

from ..extensions import db
from ..models import CheckoutFailure
from clinicpos.time_utils import utcnow


def record_checkout_failure(reason: str, *, code: str | None = None, payload: dict | None = None) -> None:
    """
    Persist a failure reason and the request shape.

    Runs on its own connection so it survives the rollback of the failed
    unit of work. Any error here is logged and swallowed: the caller's
    outcome never depends on the diagnostics write.
    """
    payload = payload or {}
    try:
        with db.engine.begin() as conn:
            conn.execute(
                insert(CheckoutFailure.__table__).values(
                    reason=(reason or "Unknown error")[:2000],
                    code=code,
                    checkout_session_id=payload.get("checkout_session_id"),
                    payload=payload,
                    created_at=utcnow(),
                )
            )
    except Exception:
        current_app.logger.warning("Failed to record checkout failure diagnostics", exc_info=True)


def list_checkout_failures(limit: int = 50) -> list[CheckoutFailure]:
    return (
        db.session.query(CheckoutFailure)
        .order_by(CheckoutFailure.id.desc())
        .limit(limit)
        .all()
    )
