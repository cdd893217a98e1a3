from __future__ import annotations

from ..extensions import db
from ..money import money_str
from .base import append_only
from clinicpos.time_utils import to_utc_z


TRANSACTION_STATUS_PAID = "PAID"
ALLOWED_TRANSACTION_STATUSES = (TRANSACTION_STATUS_PAID,)

ITEM_TYPE_PRODUCT = "PRODUCT"
ITEM_TYPE_TREATMENT = "TREATMENT"

COMMISSION_ROLE_PRIMARY = "PRIMARY"
COMMISSION_ROLE_ASSISTANT = "ASSISTANT"


@append_only
class Transaction(db.Model):
    """
    Committed checkout (aggregate root).

    Written exactly once per checkout_session_id (the idempotency key) and
    never modified afterwards. There is no on-disk draft state: a checkout
    either commits as PAID together with its items, commissions and stock
    movements, or nothing is written.

    All amounts are snapshots computed at checkout time and stored rounded
    to 2 places (HALF_UP).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("checkout_session_id", name="uq_transactions_checkout_session"),
        db.UniqueConstraint("number", name="uq_transactions_number"),
        db.Index("ix_transactions_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "TRX-20261019-0001")
    number = db.Column(db.String(64), nullable=False)
    checkout_session_id = db.Column(db.String(128), nullable=False)

    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=True, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("customer_categories.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=TRANSACTION_STATUS_PAID)

    payment_method = db.Column(db.String(32), nullable=False)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount_total = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    cost_total = db.Column(db.Numeric(12, 2), nullable=False)
    profit_total = db.Column(db.Numeric(12, 2), nullable=False)
    commission_total = db.Column(db.Numeric(12, 2), nullable=False)
    change_amount = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cashier = db.relationship("User")
    member = db.relationship("Member")
    category = db.relationship("CustomerCategory")
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy=True,
        order_by="TransactionItem.id",
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} number={self.number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "checkout_session_id": self.checkout_session_id,
            "cashier_id": self.cashier_id,
            "member_id": self.member_id,
            "category_id": self.category_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "paid_amount": money_str(self.paid_amount),
            "subtotal": money_str(self.subtotal),
            "discount_total": money_str(self.discount_total),
            "total": money_str(self.total),
            "cost_total": money_str(self.cost_total),
            "profit_total": money_str(self.profit_total),
            "commission_total": money_str(self.commission_total),
            "change_amount": money_str(self.change_amount),
            "created_at": to_utc_z(self.created_at),
        }


@append_only
class TransactionItem(db.Model):
    """
    One cart line frozen at checkout time.

    PRODUCT lines reference product_id; TREATMENT lines reference
    treatment_id, the primary therapist and optionally an assistant.
    unit_price and cost_price are snapshots, never recomputed from the catalog.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_transaction_items_qty_positive"),
        db.CheckConstraint("line_total > 0", name="ck_transaction_items_total_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)  # PRODUCT, TREATMENT

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    treatment_id = db.Column(db.Integer, db.ForeignKey("treatments.id"), nullable=True, index=True)
    therapist_id = db.Column(db.Integer, db.ForeignKey("therapists.id"), nullable=True, index=True)
    assistant_id = db.Column(db.Integer, db.ForeignKey("therapists.id"), nullable=True, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    discount_type = db.Column(db.String(16), nullable=False, default="NONE")  # NONE, PERCENT, NOMINAL
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    line_subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    line_discount = db.Column(db.Numeric(12, 2), nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    cost_price = db.Column(db.Numeric(12, 2), nullable=False)
    # Treatment lines store profit net of commissions
    profit = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")
    treatment = db.relationship("Treatment")
    therapist = db.relationship("Therapist", foreign_keys=[therapist_id])
    assistant = db.relationship("Therapist", foreign_keys=[assistant_id])
    commissions = db.relationship(
        "Commission",
        backref="item",
        lazy=True,
        order_by="Commission.id",
    )

    @property
    def name(self) -> str:
        if self.product is not None:
            return self.product.name
        if self.treatment is not None:
            return self.treatment.name
        return "Unknown"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "type": self.type,
            "name": self.name,
            "product_id": self.product_id,
            "treatment_id": self.treatment_id,
            "therapist_id": self.therapist_id,
            "therapist_name": self.therapist.name if self.therapist else None,
            "assistant_id": self.assistant_id,
            "assistant_name": self.assistant.name if self.assistant else None,
            "qty": self.qty,
            "unit_price": money_str(self.unit_price),
            "discount_type": self.discount_type,
            "discount_value": money_str(self.discount_value),
            "line_subtotal": money_str(self.line_subtotal),
            "line_discount": money_str(self.line_discount),
            "line_total": money_str(self.line_total),
            "cost_price": money_str(self.cost_price),
            "profit": money_str(self.profit),
            "commissions": [c.to_dict() for c in self.commissions],
        }


@append_only
class Commission(db.Model):
    """
    Commission earned by one therapist role on one treatment line.

    base_amount is the discounted line total; amount = round2(base * percent / 100).
    The primary therapist and the assistant each get their own row at their own
    full rate; neither reduces the other.
    """
    __tablename__ = "commissions"
    __table_args__ = (
        db.UniqueConstraint("transaction_item_id", "role", name="uq_commissions_item_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_item_id = db.Column(db.Integer, db.ForeignKey("transaction_items.id"), nullable=False, index=True)
    therapist_id = db.Column(db.Integer, db.ForeignKey("therapists.id"), nullable=False, index=True)

    role = db.Column(db.String(16), nullable=False)  # PRIMARY, ASSISTANT
    percent = db.Column(db.Numeric(5, 2), nullable=False)
    base_amount = db.Column(db.Numeric(12, 2), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    therapist = db.relationship("Therapist")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_item_id": self.transaction_item_id,
            "therapist_id": self.therapist_id,
            "therapist_name": self.therapist.name if self.therapist else None,
            "role": self.role,
            "percent": money_str(self.percent),
            "base_amount": money_str(self.base_amount),
            "amount": money_str(self.amount),
        }


class CheckoutFailure(db.Model):
    """
    Diagnostics row for a rejected checkout (reason + request shape).

    Written best-effort outside the failed unit of work; never read by the
    checkout path itself.
    """
    __tablename__ = "checkout_failures"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    reason = db.Column(db.Text, nullable=False)
    code = db.Column(db.String(64), nullable=True, index=True)
    checkout_session_id = db.Column(db.String(128), nullable=True, index=True)
    payload = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reason": self.reason,
            "code": self.code,
            "checkout_session_id": self.checkout_session_id,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }
