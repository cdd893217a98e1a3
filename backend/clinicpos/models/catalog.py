from __future__ import annotations

from ..extensions import db
from ..money import money_str
from clinicpos.time_utils import to_utc_z


class CustomerCategory(db.Model):
    """
    Customer pricing tier (e.g. PASIEN, RESELLER, MEMBER, AGEN).

    Products are priced per category. Treatments ignore the category for
    pricing, but every transaction still records it for reporting.
    """
    __tablename__ = "customer_categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<CustomerCategory id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
        }


class Product(db.Model):
    """
    Physical product master data.

    Stock is never stored here: it is derived from StockMovement rows.
    The row itself is the lock target that serializes concurrent checkouts
    selling the same product (SELECT ... FOR UPDATE).

    cost_price is the live catalog cost. Checkout copies it into
    TransactionItem.cost_price and StockMovement.unit_cost at sale time;
    those snapshots are never re-read from here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=True)

    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    prices = db.relationship("ProductPrice", backref="product", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "cost_price": money_str(self.cost_price),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductPrice(db.Model):
    """Sell price of a product for one customer category."""
    __tablename__ = "product_prices"
    __table_args__ = (
        db.UniqueConstraint("product_id", "category_id", name="uq_product_prices_product_category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("customer_categories.id"), nullable=False, index=True)
    price = db.Column(db.Numeric(12, 2), nullable=False)

    category = db.relationship("CustomerCategory")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "category_id": self.category_id,
            "price": money_str(self.price),
        }


class Treatment(db.Model):
    """Scheduled treatment sold at a single flat price regardless of category."""
    __tablename__ = "treatments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=True)

    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sell_price = db.Column(db.Numeric(12, 2), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Treatment id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "duration_minutes": self.duration_minutes,
            "cost_price": money_str(self.cost_price),
            "sell_price": money_str(self.sell_price),
            "is_active": self.is_active,
        }
