# Overview: Service-layer operations for the stock ledger; aggregation, locking and movements.

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, func

from ..errors import InsufficientStock, ItemNotFound, ValidationError
from ..extensions import db
from ..models import Product, StockMovement, Transaction, INBOUND_KINDS, MOVEMENT_KINDS
from ..money import round2
from .concurrency import begin_write_unit, lock_for_update, run_with_retry
from .ledger_service import append_audit_event
"""
Stock Ledger Invariants (authoritative)

Inventory model:
- Stock is ledger-derived from StockMovement rows; never stored as a mutable quantity field.
- Current stock = SUM(IN, ADJUST) - SUM(OUT, SALE).
- Movements are append-only: never updated or deleted.

Concurrency:
- reserve_and_validate() locks every referenced product row (sorted by id,
  so two carts never wait on each other in opposite order) and aggregates
  stock AFTER the locks are held. A pre-lock snapshot is never trusted.
- Reads (current_stock, all_stocks) take no locks.

Cost basis:
- SALE movements copy the unit cost resolved by the checkout at sale time;
  later catalog cost changes never touch existing movements.
"""

logger = logging.getLogger(__name__)

MANUAL_KINDS = ("IN", "OUT", "ADJUST")


def _signed_quantity():
    return case(
        (StockMovement.type.in_(INBOUND_KINDS), StockMovement.quantity),
        else_=-StockMovement.quantity,
    )


def _stock_by_product(product_ids: list[int] | None = None) -> dict[int, int]:
    q = db.session.query(
        StockMovement.product_id,
        func.coalesce(func.sum(_signed_quantity()), 0),
    ).filter(StockMovement.type.in_(MOVEMENT_KINDS))
    if product_ids is not None:
        q = q.filter(StockMovement.product_id.in_(product_ids))
    rows = q.group_by(StockMovement.product_id).all()
    return {product_id: int(total or 0) for product_id, total in rows}


def current_stock(product_id: int) -> int:
    """Stock on hand for one product. No locking."""
    return _stock_by_product([product_id]).get(product_id, 0)


def all_stocks() -> dict[int, int]:
    """Stock on hand for every product with at least one movement. No locking."""
    return _stock_by_product()


def reserve_and_validate(product_quantities: dict[int, int]) -> dict[int, Product]:
    """
    Lock the requested products and verify availability.

    Must run inside the caller's unit of work: the row locks are held until
    that transaction commits or rolls back. Any shortfall raises
    InsufficientStock and the caller's whole unit of work aborts; partial
    fulfillment is never allowed.

    Returns the locked Product rows keyed by id.
    """
    if not product_quantities:
        return {}

    product_ids = sorted(product_quantities)
    products = (
        lock_for_update(db.session.query(Product).filter(Product.id.in_(product_ids)))
        .order_by(Product.id)
        .all()
    )
    by_id = {p.id: p for p in products}

    missing = [pid for pid in product_ids if pid not in by_id]
    if missing:
        raise ItemNotFound(f"Product {missing[0]} not found", details={"product_ids": missing})

    # Aggregated under the lock
    available = _stock_by_product(product_ids)
    for pid in product_ids:
        on_hand = available.get(pid, 0)
        requested = product_quantities[pid]
        if requested > on_hand:
            raise InsufficientStock(pid, on_hand, requested, name=by_id[pid].name)

    return by_id


def record_sale_movement(
    *,
    product_id: int,
    quantity: int,
    unit_cost: Decimal,
    transaction: Transaction,
    user_id: int | None,
) -> StockMovement:
    """Append one SALE movement linked to a transaction. No commit."""
    movement = StockMovement(
        product_id=product_id,
        type="SALE",
        quantity=quantity,
        unit_cost=round2(Decimal(unit_cost)),
        transaction=transaction,
        note=transaction.number,
        user_id=user_id,
    )
    db.session.add(movement)
    return movement


def adjust_stock(
    *,
    product_id: int,
    kind: str,
    quantity: int,
    note: str,
    user_id: int | None = None,
) -> StockMovement:
    """
    Manual stock movement (IN, OUT or ADJUST).

    - Quantities are positive magnitudes; the kind carries the sign
      (IN and ADJUST add, OUT removes).
    - OUT may not take stock below zero.
    - unit_cost snapshots the product's current cost price.
    - A note is required and lands in the audit trail.
    """
    kind = (kind or "").strip().upper()
    if kind not in MANUAL_KINDS:
        raise ValidationError(f"kind must be one of {', '.join(MANUAL_KINDS)}")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity <= 0:
        raise ValidationError(f"{kind} quantity must be positive")
    if not note or not note.strip():
        raise ValidationError("note is required")

    def _op():
        begin_write_unit()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise ItemNotFound(f"Product {product_id} not found", details={"product_id": product_id})

        if kind == "OUT":
            on_hand = current_stock(product_id)
            if quantity > on_hand:
                raise InsufficientStock(product_id, on_hand, quantity, name=product.name)

        movement = StockMovement(
            product_id=product.id,
            type=kind,
            quantity=quantity,
            unit_cost=round2(Decimal(product.cost_price or 0)),
            note=note.strip()[:255],
            user_id=user_id,
        )
        db.session.add(movement)
        db.session.flush()

        append_audit_event(
            event_type="stock.adjusted",
            event_category="inventory",
            entity_type="stock_movement",
            entity_id=movement.id,
            actor_user_id=user_id,
            note=f"{kind} {quantity} x {product.name}: {note.strip()}",
            payload=f"product_id={product.id},kind={kind},quantity={quantity}",
        )

        db.session.commit()
        logger.info("Stock %s of %s for product %s", kind, quantity, product.id)
        return movement

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def list_movements(
    *,
    product_id: int | None = None,
    kind: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """Paginated movement history, newest first."""
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 20), 1), 200)

    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if kind:
        q = q.filter(StockMovement.type == kind.upper())
    if start is not None:
        q = q.filter(StockMovement.created_at >= start)
    if end is not None:
        q = q.filter(StockMovement.created_at <= end)

    total = q.count()
    rows = (
        q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": [m.to_dict() for m in rows],
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        },
    }
