from __future__ import annotations

from ..extensions import db
from ..money import money_str
from clinicpos.time_utils import to_utc_z


class User(db.Model):
    """
    Operator account (cashier or admin).

    Credentials and sessions are managed outside the checkout core; the core
    only needs to know which active operator performed the sale.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="CASHIER")  # ADMIN, CASHIER
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
        }


class Member(db.Model):
    """
    Registered customer bound to exactly one pricing category.

    INVARIANT: a transaction that references a member is always priced and
    recorded under the member's category.
    """
    __tablename__ = "members"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    member_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("customer_categories.id"), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("CustomerCategory")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "member_code": self.member_code,
            "name": self.name,
            "phone": self.phone,
            "category_id": self.category_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class TherapistLevel(db.Model):
    """
    Seniority tier for therapists.

    default_commission applies to therapists without their own percent.
    An explicit therapist percent must stay within [min_commission, max_commission].
    """
    __tablename__ = "therapist_levels"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)

    default_commission = db.Column(db.Numeric(5, 2), nullable=True)
    min_commission = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    max_commission = db.Column(db.Numeric(5, 2), nullable=False, default=100)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "default_commission": money_str(self.default_commission),
            "min_commission": money_str(self.min_commission),
            "max_commission": money_str(self.max_commission),
        }


class Therapist(db.Model):
    """Treatment provider; only active therapists may be assigned to new lines."""
    __tablename__ = "therapists"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    level_id = db.Column(db.Integer, db.ForeignKey("therapist_levels.id"), nullable=True, index=True)
    # Explicit override; NULL falls through to the level default, then the store default
    commission_percent = db.Column(db.Numeric(5, 2), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    level = db.relationship("TherapistLevel", backref=db.backref("therapists", lazy=True))

    def __repr__(self) -> str:
        return f"<Therapist id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "level_id": self.level_id,
            "commission_percent": money_str(self.commission_percent),
            "is_active": self.is_active,
        }
