# Overview: Service-layer operations for the audit trail; append-only event records.

from __future__ import annotations

from typing import Optional

from ..extensions import db
from ..models import AuditEvent
"""
Audit Trail Invariants (authoritative)

- Append-only audit log for cross-cutting domain events.
- No domain/business logic in the audit log itself.
- Events are written inside the same DB transaction as the domain event they record.
"""


def append_audit_event(
    *,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    note: Optional[str] = None,
    payload: Optional[str] = None,
) -> AuditEvent:
    """
    Append-only audit event.

    - No domain logic here.
    - No deletes/updates of existing events.
    """
    ev = AuditEvent(
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        note=note[:255] if note else None,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_audit_events(entity_type: str | None = None, entity_id: int | None = None, limit: int = 100) -> list[AuditEvent]:
    q = db.session.query(AuditEvent)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    return q.order_by(AuditEvent.id.desc()).limit(limit).all()
