from __future__ import annotations

from ..extensions import db
from .base import append_only
from clinicpos.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic number sequences, one row per sequence key (e.g. "TRX-20261019").

    Transaction numbers are allocated by incrementing next_number.
    Incremented inside the checkout unit of work, so a rolled-back
    checkout gives its number back.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("sequence_key", name="uq_doc_sequences_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sequence_key = db.Column(db.String(64), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence_key": self.sequence_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


@append_only
class AuditEvent(db.Model):
    """
    Append-only audit trail for cross-cutting domain events.

    Written inside the same DB transaction as the fact it records.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # What happened
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., transaction.paid, stock.adjusted
    event_category = db.Column(db.String(32), nullable=False, index=True)  # sales, inventory

    # What it refers to (generic pointer)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    # Optional structured metadata (keep small; do not denormalize domain state)
    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "event_category": self.event_category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": self.payload,
        }
