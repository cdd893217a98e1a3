# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from clinicpos.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_value(sequence_key: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(sequence_key=sequence_key)
        .scalar()
    )


def next_document_number(*, sequence_key: str, pad: int = 4) -> str:
    """
    Allocate the next number for a sequence key inside the caller's transaction.

    The UPDATE takes a row lock on the sequence row, so concurrent
    allocators serialize. The first allocation of a key inserts the row
    inside a SAVEPOINT; losing that insert race only rolls back the
    savepoint, never the caller's unit of work.
    """
    if not sequence_key:
        raise DocumentSequenceError("sequence_key is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.sequence_key == sequence_key)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_value(sequence_key) - 1
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(sequence_key=sequence_key, next_number=2))
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_value(sequence_key) - 1

    return f"{sequence_key}-{next_num:0{pad}d}"


def next_transaction_number(now: datetime | None = None) -> str:
    """Daily transaction numbers: TRX-YYYYMMDD-0001, TRX-YYYYMMDD-0002, ..."""
    day = (now or utcnow()).strftime("%Y%m%d")
    return next_document_number(sequence_key=f"TRX-{day}")
