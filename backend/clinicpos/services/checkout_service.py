"""
Checkout Service - atomic cart-to-transaction processing

The only place where money, inventory and commission payouts are
computed and committed together. A checkout either commits completely as
PAID (transaction, items, commissions, SALE movements, audit event) or
leaves the database exactly as it was.

Protocol:
1. Validate the request shape (no database work).
2. Resolve the effective category (member category always wins).
3. Idempotency: an existing transaction for the checkout session id is
   returned unchanged.
4. One unit of work: lock + validate stock, price and compute every line,
   compute commissions, sum totals, insert everything, commit.
5. Losing a race on the idempotency key resolves to the winner's record.
6. Failures after step 1 are recorded best-effort in the diagnostics sink.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    CategoryMismatch,
    CheckoutError,
    InsufficientStock,
    ItemInactive,
    ItemNotFound,
    NonPositiveTotal,
    ValidationError,
)
from ..extensions import db
from ..models import Commission, Transaction, TransactionItem, Treatment, User
from ..models.transactions import (
    ALLOWED_TRANSACTION_STATUSES,
    COMMISSION_ROLE_ASSISTANT,
    ITEM_TYPE_PRODUCT,
    ITEM_TYPE_TREATMENT,
    TRANSACTION_STATUS_PAID,
)
from ..money import ZERO, money_str, round2
from ..validation import CheckoutRequest, ProductLine, TreatmentLine, parse_checkout_request
from clinicpos.time_utils import utcnow
from .commission_service import commissions_for_line, load_therapist
from .concurrency import begin_write_unit, run_with_retry
from .diagnostics_service import record_checkout_failure
from .discount_service import compute_line
from .document_service import next_transaction_number
from .ledger_service import append_audit_event
from .pricing_service import resolve_category, resolve_price
from .settings_service import get_default_commission_percent
from .stock_service import record_sale_movement, reserve_and_validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    transaction: Transaction
    replayed: bool

    def to_dict(self) -> dict:
        return project_transaction(self.transaction)


@dataclass
class _Totals:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    cost: Decimal = ZERO
    profit: Decimal = ZERO
    commission: Decimal = ZERO

    def rounded(self) -> "_Totals":
        return _Totals(
            subtotal=round2(self.subtotal),
            discount=round2(self.discount),
            total=round2(self.total),
            cost=round2(self.cost),
            profit=round2(self.profit),
            commission=round2(self.commission),
        )


def find_transaction_by_session(checkout_session_id: str) -> Transaction | None:
    return (
        db.session.query(Transaction)
        .filter_by(checkout_session_id=checkout_session_id)
        .first()
    )


def get_transaction(transaction_id: int) -> Transaction | None:
    return db.session.get(Transaction, transaction_id)


def project_transaction(tx: Transaction) -> dict:
    """Caller-facing snapshot of a committed transaction (ids, number, totals, lines)."""
    data = tx.to_dict()
    data.update({
        "category_code": tx.category.code if tx.category else None,
        "category_name": tx.category.name if tx.category else None,
        "member_code": tx.member.member_code if tx.member else None,
        "member_name": tx.member.name if tx.member else None,
        "cashier_name": tx.cashier.name if tx.cashier else None,
        "items": [
            {
                "id": item.id,
                "type": item.type,
                "name": item.name,
                "qty": item.qty,
                "unit_price": money_str(item.unit_price),
                "discount_type": item.discount_type,
                "discount_value": money_str(item.discount_value),
                "line_subtotal": money_str(item.line_subtotal),
                "line_discount": money_str(item.line_discount),
                "line_total": money_str(item.line_total),
                "therapist_name": item.therapist.name if item.therapist else None,
                "assistant_name": item.assistant.name if item.assistant else None,
                "commissions": [c.to_dict() for c in item.commissions],
            }
            for item in tx.items
        ],
    })
    return data


def _build_product_item(line: ProductLine, product, category_id: int, totals: _Totals) -> TransactionItem:
    if not product.is_active:
        raise ItemInactive(f"Product {product.name} is no longer active", details={"product_id": product.id})

    unit_price = resolve_price(product, category_id)
    cost_price = round2(Decimal(product.cost_price or 0))
    amounts = compute_line(unit_price, line.qty, line.discount_type, line.discount_value, cost_price)

    totals.subtotal += amounts.subtotal
    totals.discount += amounts.discount
    totals.total += amounts.total
    totals.cost += amounts.cost_total
    totals.profit += amounts.profit

    return TransactionItem(
        type=ITEM_TYPE_PRODUCT,
        product_id=product.id,
        product=product,
        qty=line.qty,
        unit_price=unit_price,
        discount_type=line.discount_type,
        discount_value=line.discount_value,
        line_subtotal=amounts.subtotal,
        line_discount=amounts.discount,
        line_total=amounts.total,
        cost_price=cost_price,
        profit=amounts.profit,
    )


def _build_treatment_item(
    line: TreatmentLine,
    category_id: int,
    default_percent: Decimal,
    totals: _Totals,
) -> TransactionItem:
    treatment = db.session.get(Treatment, line.treatment_id)
    if treatment is None:
        raise ItemNotFound(f"Treatment {line.treatment_id} not found", details={"treatment_id": line.treatment_id})
    if not treatment.is_active:
        raise ItemInactive(f"Treatment {treatment.name} is no longer active", details={"treatment_id": treatment.id})

    therapist = load_therapist(line.therapist_id)
    assistant = None
    if line.assistant_id is not None:
        assistant = load_therapist(line.assistant_id, role=COMMISSION_ROLE_ASSISTANT)

    # Category has no effect on treatment pricing
    unit_price = resolve_price(treatment, category_id)
    cost_price = round2(Decimal(treatment.cost_price or 0))
    amounts = compute_line(unit_price, line.qty, line.discount_type, line.discount_value, cost_price)

    shares = commissions_for_line(amounts.total, therapist, assistant, default_percent)
    line_commission = sum((s.amount for s in shares), ZERO)
    # Commission is a cost of the treatment
    profit = round2(amounts.profit - line_commission)

    totals.subtotal += amounts.subtotal
    totals.discount += amounts.discount
    totals.total += amounts.total
    totals.cost += amounts.cost_total
    totals.profit += profit
    totals.commission += line_commission

    item = TransactionItem(
        type=ITEM_TYPE_TREATMENT,
        treatment_id=treatment.id,
        treatment=treatment,
        therapist_id=therapist.id,
        therapist=therapist,
        assistant_id=assistant.id if assistant else None,
        assistant=assistant,
        qty=line.qty,
        unit_price=unit_price,
        discount_type=line.discount_type,
        discount_value=line.discount_value,
        line_subtotal=amounts.subtotal,
        line_discount=amounts.discount,
        line_total=amounts.total,
        cost_price=cost_price,
        profit=profit,
    )
    for share in shares:
        item.commissions.append(
            Commission(
                therapist_id=share.therapist.id,
                therapist=share.therapist,
                role=share.role,
                percent=share.percent,
                base_amount=share.base_amount,
                amount=share.amount,
            )
        )
    return item


def _replay(checkout_session_id: str) -> Transaction | None:
    existing = find_transaction_by_session(checkout_session_id)
    if existing is not None:
        logger.info("Checkout %s already committed as %s; returning it", checkout_session_id, existing.number)
    return existing


def _commit_checkout(
    request: CheckoutRequest,
    cashier_id: int,
    category_id: int,
    member_id: int | None,
    default_percent: Decimal,
) -> tuple[Transaction, bool]:
    begin_write_unit()

    try:
        locked_products = reserve_and_validate(request.product_quantities())
    except InsufficientStock:
        # A concurrent request with the same key may have taken the last units
        existing = _replay(request.checkout_session_id)
        if existing is not None:
            db.session.rollback()
            return existing, True
        raise

    # Locks held: a winner that committed before us is visible now
    existing = _replay(request.checkout_session_id)
    if existing is not None:
        db.session.rollback()
        return existing, True

    totals = _Totals()
    items: list[TransactionItem] = []
    for line in request.items:
        if isinstance(line, ProductLine):
            items.append(_build_product_item(line, locked_products[line.product_id], category_id, totals))
        else:
            items.append(_build_treatment_item(line, category_id, default_percent, totals))

    totals = totals.rounded()
    if totals.total <= 0:
        raise NonPositiveTotal("Transaction total must be greater than 0", details={"total": str(totals.total)})

    now = utcnow()
    tx = Transaction(
        number=next_transaction_number(now),
        checkout_session_id=request.checkout_session_id,
        cashier_id=cashier_id,
        member_id=member_id,
        category_id=category_id,
        status=TRANSACTION_STATUS_PAID,
        payment_method=request.payment_method,
        paid_amount=request.paid_amount,
        subtotal=totals.subtotal,
        discount_total=totals.discount,
        total=totals.total,
        cost_total=totals.cost,
        profit_total=totals.profit,
        commission_total=totals.commission,
        change_amount=round2(request.paid_amount - totals.total),
        created_at=now,
    )
    if tx.status not in ALLOWED_TRANSACTION_STATUSES:
        raise ValidationError(f"Invalid transaction status {tx.status}")

    db.session.add(tx)
    for item in items:
        item.transaction = tx
        db.session.add(item)
        if item.type == ITEM_TYPE_PRODUCT:
            record_sale_movement(
                product_id=item.product_id,
                quantity=item.qty,
                unit_cost=item.cost_price,
                transaction=tx,
                user_id=cashier_id,
            )

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        existing = _replay(request.checkout_session_id)
        if existing is not None:
            return existing, True
        raise

    append_audit_event(
        event_type="transaction.paid",
        event_category="sales",
        entity_type="transaction",
        entity_id=tx.id,
        actor_user_id=cashier_id,
        note=f"Transaction {tx.number} paid",
        payload=f"total={totals.total},items={len(items)},session={request.checkout_session_id}",
    )

    db.session.commit()
    logger.info(
        "Checkout %s committed as %s (total %s, %s items)",
        request.checkout_session_id, tx.number, totals.total, len(items),
    )
    return tx, False


def checkout(
    data: dict | CheckoutRequest,
    cashier_id: int,
    *,
    default_commission_percent: Decimal | None = None,
) -> CheckoutResult:
    """
    Turn a cart into a committed PAID transaction, exactly once per checkout session id.

    default_commission_percent is the resolved store-wide default; when
    omitted it is read once from store settings for this call.
    """
    request = data if isinstance(data, CheckoutRequest) else parse_checkout_request(data)

    try:
        cashier = db.session.get(User, cashier_id) if cashier_id is not None else None
        if cashier is None or not cashier.is_active:
            raise ValidationError("Cashier account not found or inactive", details={"cashier_id": cashier_id})

        category, member = resolve_category(request.member_code, request.category_code)
        if member is not None and category.id != member.category_id:
            raise CategoryMismatch(
                "Transaction category must equal the member's category",
                details={"member_category_id": member.category_id, "category_id": category.id},
            )

        existing = _replay(request.checkout_session_id)
        if existing is not None:
            return CheckoutResult(existing, True)

        if default_commission_percent is None:
            default_commission_percent = get_default_commission_percent()

        category_id = category.id
        member_id = member.id if member else None
        tx, replayed = run_with_retry(
            lambda: _commit_checkout(request, cashier.id, category_id, member_id, default_commission_percent),
            attempts=current_app.config.get("CHECKOUT_RETRY_ATTEMPTS", 3),
            backoff_base=current_app.config.get("CHECKOUT_RETRY_BACKOFF", 0.1),
        )
        return CheckoutResult(tx, replayed)

    except Exception as exc:
        db.session.rollback()
        if isinstance(exc, CheckoutError):
            logger.warning("Checkout %s rejected: %s", request.checkout_session_id, exc)
        else:
            logger.exception("Checkout %s failed", request.checkout_session_id)
        record_checkout_failure(
            str(exc),
            code=getattr(exc, "code", type(exc).__name__),
            payload=request.diagnostic_shape(),
        )
        raise
