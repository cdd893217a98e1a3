"""
Stock ledger tests.

Verifies:
- Stock is derived from movements (IN + ADJUST - OUT - SALE)
- reserve_and_validate rejects shortfalls without partial fulfillment
- Manual adjustments append movements and audit events
"""

from decimal import Decimal

import pytest

from clinicpos.errors import InsufficientStock, ItemNotFound, ValidationError
from clinicpos.extensions import db
from clinicpos.models import AuditEvent, StockMovement
from clinicpos.services import stock_service


def _movement(product, kind, quantity):
    db.session.add(StockMovement(product_id=product.id, type=kind, quantity=quantity, unit_cost=Decimal("0")))
    db.session.commit()


class TestAggregation:

    def test_no_movements_means_zero(self, make_product):
        product = make_product()
        assert stock_service.current_stock(product.id) == 0

    def test_signed_sum_of_movements(self, make_product):
        product = make_product(stock=10)
        _movement(product, "OUT", 2)
        _movement(product, "SALE", 3)
        _movement(product, "ADJUST", 4)

        assert stock_service.current_stock(product.id) == 9

    def test_all_stocks_by_product(self, make_product):
        a = make_product(name="A", stock=5)
        b = make_product(name="B", stock=7)
        c = make_product(name="C")

        stocks = stock_service.all_stocks()
        assert stocks[a.id] == 5
        assert stocks[b.id] == 7
        assert c.id not in stocks


class TestReserveAndValidate:

    def test_returns_locked_products(self, make_product):
        a = make_product(name="A", stock=5)
        b = make_product(name="B", stock=1)

        locked = stock_service.reserve_and_validate({b.id: 1, a.id: 5})
        db.session.rollback()

        assert set(locked) == {a.id, b.id}

    def test_shortfall_reports_available_and_requested(self, make_product):
        product = make_product(stock=1)

        with pytest.raises(InsufficientStock) as exc:
            stock_service.reserve_and_validate({product.id: 2})
        db.session.rollback()

        assert exc.value.details == {"product_id": product.id, "available": 1, "requested": 2}

    def test_unknown_product(self, db_session):
        with pytest.raises(ItemNotFound):
            stock_service.reserve_and_validate({404: 1})
        db.session.rollback()

    def test_empty_request(self, db_session):
        assert stock_service.reserve_and_validate({}) == {}


class TestAdjustStock:

    def test_in_adds_stock_and_audits(self, make_product, admin):
        product = make_product(cost="42.5")

        movement = stock_service.adjust_stock(
            product_id=product.id, kind="in", quantity=10, note="Restock", user_id=admin.id,
        )

        assert movement.type == "IN"
        assert movement.unit_cost == Decimal("42.50")
        assert stock_service.current_stock(product.id) == 10

        event = db.session.query(AuditEvent).filter_by(entity_type="stock_movement", entity_id=movement.id).one()
        assert event.event_type == "stock.adjusted"
        assert event.actor_user_id == admin.id

    def test_adjust_adds_stock(self, make_product):
        product = make_product(stock=5)

        stock_service.adjust_stock(product_id=product.id, kind="ADJUST", quantity=2, note="Recount found 2 more")

        assert stock_service.current_stock(product.id) == 7

    def test_out_cannot_go_below_zero(self, make_product):
        product = make_product(stock=2)

        with pytest.raises(InsufficientStock):
            stock_service.adjust_stock(product_id=product.id, kind="OUT", quantity=3, note="Expired")

        assert stock_service.current_stock(product.id) == 2
        assert db.session.query(AuditEvent).count() == 0

    @pytest.mark.parametrize(
        "kind,quantity,note",
        [
            ("SALE", 1, "manual sale"),
            ("IN", 0, "zero"),
            ("IN", -1, "negative in"),
            ("OUT", -1, "negative out"),
            ("ADJUST", 0, "zero adjust"),
            ("ADJUST", -2, "negative adjust"),
            ("IN", 1.5, "fractional"),
            ("IN", 1, "   "),
        ],
    )
    def test_rejects_invalid_input(self, make_product, kind, quantity, note):
        product = make_product()
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product_id=product.id, kind=kind, quantity=quantity, note=note)

    def test_unknown_product(self, db_session):
        with pytest.raises(ItemNotFound):
            stock_service.adjust_stock(product_id=404, kind="IN", quantity=1, note="x")


class TestListMovements:

    def test_newest_first_with_pagination(self, make_product):
        product = make_product(stock=10)
        for qty in (1, 2, 3):
            stock_service.adjust_stock(product_id=product.id, kind="OUT", quantity=qty, note=f"out {qty}")

        page = stock_service.list_movements(product_id=product.id, page=1, limit=2)

        assert page["meta"] == {"total": 4, "page": 1, "limit": 2, "total_pages": 2}
        assert [m["quantity"] for m in page["data"]] == [3, 2]
        assert page["data"][0]["product_name"] == product.name

    def test_filter_by_kind(self, make_product):
        product = make_product(stock=10)
        stock_service.adjust_stock(product_id=product.id, kind="OUT", quantity=1, note="out")

        page = stock_service.list_movements(kind="in")

        assert page["meta"]["total"] == 1
        assert page["data"][0]["type"] == "IN"
