# Overview: Append-only guard for financial and inventory fact tables.

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..errors import ImmutableRecordError


def _reject_update(mapper, connection, target):
    session = object_session(target)
    # Appending children dirties the parent's collection; only column edits count.
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableRecordError(f"{type(target).__name__} records are append-only and cannot be updated")


def _reject_delete(mapper, connection, target):
    raise ImmutableRecordError(f"{type(target).__name__} records are append-only and cannot be deleted")


def append_only(cls):
    """
    Class decorator: block ORM-level UPDATE and DELETE for a model.

    Bulk Core statements (table.delete()) bypass mapper events; those are
    reserved for test teardown and schema maintenance.
    """
    event.listen(cls, "before_update", _reject_update)
    event.listen(cls, "before_delete", _reject_delete)
    return cls
