"""
Pytest fixtures for checkout core tests.

Provides an in-memory app, per-test table cleanup, HTTP helpers and
factories for catalog, people and opening stock.
"""

from decimal import Decimal

import pytest

from clinicpos import create_app
from clinicpos.extensions import db
from clinicpos.models import (
    CustomerCategory,
    Member,
    Product,
    ProductPrice,
    StockMovement,
    Therapist,
    TherapistLevel,
    Treatment,
    User,
)
from clinicpos.decorators import OPERATOR_HEADER


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'CHECKOUT_RETRY_BACKOFF': 0,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Start every test from empty tables."""
    db.session.rollback()
    # Core deletes bypass the append-only ORM guard
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture
def categories(db_session):
    """PASIEN, RESELLER and MEMBER categories keyed by code."""
    rows = {}
    for code, name in (("PASIEN", "Pasien"), ("RESELLER", "Reseller"), ("MEMBER", "Member")):
        row = CustomerCategory(code=code, name=name)
        db_session.add(row)
        rows[code] = row
    db_session.commit()
    return rows


@pytest.fixture
def cashier(db_session):
    user = User(username="kasir", name="Kasir 1", role="CASHIER")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin(db_session):
    user = User(username="admin", name="Admin", role="ADMIN")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def levels(db_session):
    """Senior 10% [5-50] and Junior 5% [3-30]."""
    senior = TherapistLevel(
        name="Senior",
        default_commission=Decimal("10"),
        min_commission=Decimal("5"),
        max_commission=Decimal("50"),
    )
    junior = TherapistLevel(
        name="Junior",
        default_commission=Decimal("5"),
        min_commission=Decimal("3"),
        max_commission=Decimal("30"),
    )
    db_session.add_all([senior, junior])
    db_session.commit()
    return {"Senior": senior, "Junior": junior}


@pytest.fixture
def make_product(db_session, categories):
    """
    Factory: product with per-category prices and opening stock.

    prices maps category code -> price; stock > 0 writes one IN movement.
    """
    def _make(name="Serum", prices=None, cost="50", stock=0, is_active=True):
        product = Product(name=name, cost_price=Decimal(cost), is_active=is_active)
        db_session.add(product)
        db_session.flush()
        for code, price in (prices if prices is not None else {"PASIEN": "100"}).items():
            db_session.add(ProductPrice(
                product_id=product.id,
                category_id=categories[code].id,
                price=Decimal(price),
            ))
        if stock:
            db_session.add(StockMovement(
                product_id=product.id,
                type="IN",
                quantity=stock,
                unit_cost=Decimal(cost),
                note="Opening stock",
            ))
        db_session.commit()
        return product

    return _make


@pytest.fixture
def make_treatment(db_session):
    def _make(name="Facial", sell="200", cost="0", is_active=True):
        treatment = Treatment(
            name=name,
            sell_price=Decimal(sell),
            cost_price=Decimal(cost),
            duration_minutes=60,
            is_active=is_active,
        )
        db_session.add(treatment)
        db_session.commit()
        return treatment

    return _make


@pytest.fixture
def make_therapist(db_session):
    def _make(name="Dewi", level=None, percent=None, is_active=True):
        therapist = Therapist(
            name=name,
            level_id=level.id if level is not None else None,
            commission_percent=Decimal(percent) if percent is not None else None,
            is_active=is_active,
        )
        db_session.add(therapist)
        db_session.commit()
        return therapist

    return _make


@pytest.fixture
def make_member(db_session, categories):
    def _make(code="M-001", category_code="MEMBER", name="Sinta", is_active=True):
        member = Member(
            member_code=code,
            name=name,
            category_id=categories[category_code].id,
            is_active=is_active,
        )
        db_session.add(member)
        db_session.commit()
        return member

    return _make


def operator_headers(user) -> dict:
    """Helper to create operator identity headers."""
    return {OPERATOR_HEADER: str(user.id)}


def product_line(product, qty=1, **extra) -> dict:
    line = {"type": "PRODUCT", "product_id": product.id, "qty": qty}
    line.update(extra)
    return line


def treatment_line(treatment, therapist, qty=1, assistant=None, **extra) -> dict:
    line = {
        "type": "TREATMENT",
        "treatment_id": treatment.id,
        "therapist_id": therapist.id,
        "qty": qty,
    }
    if assistant is not None:
        line["assistant_id"] = assistant.id
    line.update(extra)
    return line


def cart(*items, session="sess-1", paid="1000", method="CASH", **extra) -> dict:
    data = {
        "items": list(items),
        "payment_method": method,
        "paid_amount": paid,
        "checkout_session_id": session,
    }
    data.update(extra)
    return data
