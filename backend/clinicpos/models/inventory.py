from __future__ import annotations

from ..extensions import db
from ..money import money_str
from .base import append_only
from clinicpos.time_utils import to_utc_z


# Kinds that add to stock; every other kind subtracts.
INBOUND_KINDS = ("IN", "ADJUST")
OUTBOUND_KINDS = ("OUT", "SALE")
MOVEMENT_KINDS = INBOUND_KINDS + OUTBOUND_KINDS


@append_only
class StockMovement(db.Model):
    """
    Append-only inventory ledger entry.

    Current stock = SUM(IN, ADJUST) - SUM(OUT, SALE).

    Quantities are always positive magnitudes; the kind carries the sign.

    unit_cost is the product cost price copied at the moment the movement was
    written. It is the permanent cost basis for that movement.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_type", "product_id", "type"),
        db.Index("ix_stock_movements_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # IN, OUT, ADJUST, SALE
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    transaction = db.relationship("Transaction", backref=db.backref("stock_movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "type": self.type,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction.number if self.transaction else None,
            "note": self.note,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
