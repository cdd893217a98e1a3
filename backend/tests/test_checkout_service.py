"""
Checkout orchestrator tests.

Verifies:
- Line arithmetic, commissions and totals land on the committed transaction
- One checkout session id yields at most one transaction
- Any failure leaves no transaction, item, commission or movement behind
- Rejected checkouts are recorded in the diagnostics sink
"""

import re
from decimal import Decimal

import pytest

from clinicpos.errors import (
    CategoryRequired,
    CommissionOutOfRange,
    DiscountExceedsPrice,
    InsufficientStock,
    ItemInactive,
    ItemNotFound,
    MemberInactive,
    MemberNotFound,
    PricingMissing,
    TherapistInactive,
    ValidationError,
)
from clinicpos.extensions import db
from clinicpos.models import (
    CheckoutFailure,
    Commission,
    StockMovement,
    Transaction,
    TransactionItem,
)
from clinicpos.services import checkout_service, stock_service
from clinicpos.services.checkout_service import checkout, project_transaction
from clinicpos.services.ledger_service import list_audit_events
from conftest import cart, product_line, treatment_line


D = Decimal


def _row_counts():
    return {
        "transactions": db.session.query(Transaction).count(),
        "items": db.session.query(TransactionItem).count(),
        "commissions": db.session.query(Commission).count(),
        "sales": db.session.query(StockMovement).filter_by(type="SALE").count(),
    }


# =============================================================================
# HAPPY PATHS
# =============================================================================


class TestCheckoutTotals:

    def test_product_line_amounts(self, cashier, make_product):
        product = make_product(prices={"PASIEN": "100"}, cost="50", stock=5)

        result = checkout(cart(product_line(product, qty=2), paid="250"), cashier.id)

        tx = result.transaction
        assert result.replayed is False
        assert tx.status == "PAID"
        assert tx.subtotal == D("200.00")
        assert tx.discount_total == D("0.00")
        assert tx.total == D("200.00")
        assert tx.cost_total == D("100.00")
        assert tx.profit_total == D("100.00")
        assert tx.commission_total == D("0.00")
        assert tx.change_amount == D("50.00")

        item = tx.items[0]
        assert (item.line_subtotal, item.line_discount, item.line_total, item.profit) == (
            D("200.00"), D("0.00"), D("200.00"), D("100.00"),
        )
        assert stock_service.current_stock(product.id) == 3

    def test_treatment_line_commission(self, cashier, categories, make_treatment, make_therapist):
        treatment = make_treatment(sell="200", cost="20")
        therapist = make_therapist(percent="10")

        result = checkout(
            cart(treatment_line(treatment, therapist, discount_type="NOMINAL", discount_value="50")),
            cashier.id,
        )

        tx = result.transaction
        item = tx.items[0]
        assert item.line_total == D("150.00")
        assert [(c.role, c.percent, c.base_amount, c.amount) for c in item.commissions] == [
            ("PRIMARY", D("10.00"), D("150.00"), D("15.00")),
        ]
        assert tx.commission_total == D("15.00")
        # 150 - 20 cost - 15 commission
        assert item.profit == D("115.00")
        assert tx.profit_total == D("115.00")

    def test_assistant_commission_is_independent(self, cashier, categories, make_treatment, make_therapist):
        treatment = make_treatment(sell="300")
        primary = make_therapist(name="Dewi", percent="10")
        assistant = make_therapist(name="Rina", percent="5")

        tx = checkout(cart(treatment_line(treatment, primary, assistant=assistant)), cashier.id).transaction

        amounts = {c.role: c.amount for c in tx.items[0].commissions}
        assert amounts == {"PRIMARY": D("30.00"), "ASSISTANT": D("15.00")}
        assert tx.commission_total == D("45.00")

    def test_uses_store_default_commission(self, cashier, categories, make_treatment, make_therapist):
        treatment = make_treatment(sell="100")
        therapist = make_therapist()

        tx = checkout(
            cart(treatment_line(treatment, therapist)),
            cashier.id,
            default_commission_percent=D("7.5"),
        ).transaction

        assert tx.items[0].commissions[0].amount == D("7.50")

    def test_mixed_cart_totals_sum_rounded_lines(self, cashier, make_product, make_treatment, make_therapist):
        product = make_product(prices={"PASIEN": "33.35"}, cost="10", stock=10)
        treatment = make_treatment(sell="99.99")
        therapist = make_therapist(percent="10")

        tx = checkout(
            cart(
                product_line(product, qty=3, discount_type="PERCENT", discount_value="10"),
                treatment_line(treatment, therapist),
            ),
            cashier.id,
        ).transaction

        # product: 100.05 - 10.01 = 90.04 ; treatment: 99.99, commission 10.00
        assert tx.subtotal == D("200.04")
        assert tx.discount_total == D("10.01")
        assert tx.total == D("190.03")
        assert tx.commission_total == D("10.00")
        assert tx.total == sum((i.line_total for i in tx.items), D("0"))

    def test_transaction_number_format_and_sequence(self, cashier, make_product):
        product = make_product(stock=5)

        first = checkout(cart(product_line(product), session="s-1"), cashier.id).transaction
        second = checkout(cart(product_line(product), session="s-2"), cashier.id).transaction

        assert re.fullmatch(r"TRX-\d{8}-0001", first.number)
        assert second.number == first.number[:-4] + "0002"

    def test_writes_sale_movements_and_audit_event(self, cashier, make_product):
        product = make_product(cost="12.5", stock=5)

        tx = checkout(cart(product_line(product, qty=2)), cashier.id).transaction

        sale = db.session.query(StockMovement).filter_by(type="SALE").one()
        assert (sale.product_id, sale.quantity, sale.transaction_id) == (product.id, 2, tx.id)
        assert sale.unit_cost == D("12.50")

        events = list_audit_events("transaction", tx.id)
        assert [e.event_type for e in events] == ["transaction.paid"]
        assert events[0].actor_user_id == cashier.id

    def test_projection_carries_display_fields(self, cashier, make_product, make_member):
        member = make_member(category_code="MEMBER")
        product = make_product(prices={"MEMBER": "90"}, stock=1)

        tx = checkout(cart(product_line(product), member_code=member.member_code), cashier.id).transaction
        data = project_transaction(tx)

        assert data["member_code"] == member.member_code
        assert data["category_code"] == "MEMBER"
        assert data["total"] == "90.00"
        assert data["items"][0]["name"] == product.name


    def test_cost_snapshot_survives_product_cost_change(self, cashier, make_product):
        product = make_product(prices={"PASIEN": "100"}, cost="50", stock=5)
        tx = checkout(cart(product_line(product), session="cost-50"), cashier.id).transaction
        tx_id = tx.id

        product.cost_price = D("80")
        db.session.commit()
        db.session.expire_all()

        tx = db.session.get(Transaction, tx_id)
        sale = db.session.query(StockMovement).filter_by(transaction_id=tx_id, type="SALE").one()
        assert tx.items[0].cost_price == D("50.00")
        assert sale.unit_cost == D("50.00")
        assert tx.cost_total == D("50.00")
        assert tx.profit_total == D("50.00")

        later = checkout(cart(product_line(product), session="cost-80"), cashier.id).transaction
        assert later.items[0].cost_price == D("80.00")
        assert later.cost_total == D("80.00")


# =============================================================================
# CATEGORY INVARIANT
# =============================================================================


class TestCategory:

    def test_member_category_overrides_client_category(self, cashier, make_product, make_member):
        member = make_member(category_code="MEMBER")
        product = make_product(prices={"MEMBER": "90", "RESELLER": "70"}, stock=1)

        tx = checkout(
            cart(product_line(product), member_code=member.member_code, category_code="RESELLER"),
            cashier.id,
        ).transaction

        assert tx.member_id == member.id
        assert tx.category_id == member.category_id
        assert tx.total == D("90.00")

    def test_category_code_selects_price(self, cashier, make_product):
        product = make_product(prices={"PASIEN": "100", "RESELLER": "70"}, stock=1)

        tx = checkout(cart(product_line(product), category_code="RESELLER"), cashier.id).transaction
        assert tx.total == D("70.00")

    def test_unknown_member(self, cashier, make_product):
        product = make_product(stock=1)
        with pytest.raises(MemberNotFound):
            checkout(cart(product_line(product), member_code="GHOST"), cashier.id)

    def test_unknown_category(self, cashier, make_product):
        product = make_product(stock=1)
        with pytest.raises(CategoryRequired):
            checkout(cart(product_line(product), category_code="VIP"), cashier.id)


    def test_inactive_member(self, cashier, make_product, make_member):
        member = make_member(code="M-OLD", is_active=False)
        product = make_product(prices={"MEMBER": "90"}, stock=1)

        with pytest.raises(MemberInactive):
            checkout(cart(product_line(product), member_code=member.member_code), cashier.id)

        assert _row_counts()["transactions"] == 0
        assert stock_service.current_stock(product.id) == 1


# =============================================================================
# IDEMPOTENCY
# =============================================================================


class TestIdempotency:

    def test_replay_returns_same_transaction(self, cashier, make_product):
        product = make_product(stock=5)
        payload = cart(product_line(product, qty=2), session="retry-me")

        first = checkout(payload, cashier.id)
        second = checkout(payload, cashier.id)

        assert second.replayed is True
        assert second.transaction.id == first.transaction.id
        assert second.transaction.number == first.transaction.number
        assert _row_counts() == {"transactions": 1, "items": 1, "commissions": 0, "sales": 1}
        assert stock_service.current_stock(product.id) == 3

    def test_replay_ignores_changed_cart(self, cashier, make_product):
        product = make_product(stock=5)
        first = checkout(cart(product_line(product, qty=1), session="k"), cashier.id)

        second = checkout(cart(product_line(product, qty=4), session="k"), cashier.id)

        assert second.transaction.id == first.transaction.id
        assert stock_service.current_stock(product.id) == 4

    def test_replay_wins_over_now_insufficient_stock(self, cashier, make_product):
        product = make_product(stock=1)
        payload = cart(product_line(product), session="last-unit")

        first = checkout(payload, cashier.id)
        second = checkout(payload, cashier.id)

        assert second.replayed is True
        assert second.transaction.id == first.transaction.id


    def test_lost_insert_race_replays_winner(self, cashier, make_product, monkeypatch):
        product = make_product(stock=5)
        payload = cart(product_line(product), session="raced")
        winner = checkout(payload, cashier.id).transaction
        winner_id = winner.id

        # Hide the winner from both lookups so the insert hits the unique key
        lookup = checkout_service.find_transaction_by_session
        calls = []

        def late_lookup(checkout_session_id):
            calls.append(checkout_session_id)
            if len(calls) <= 2:
                return None
            return lookup(checkout_session_id)

        monkeypatch.setattr(checkout_service, "find_transaction_by_session", late_lookup)

        result = checkout(payload, cashier.id)

        assert result.replayed is True
        assert result.transaction.id == winner_id
        assert len(calls) == 3
        assert _row_counts() == {"transactions": 1, "items": 1, "commissions": 0, "sales": 1}
        assert stock_service.current_stock(product.id) == 4
        assert db.session.query(CheckoutFailure).count() == 0


# =============================================================================
# FAILURES ROLL BACK EVERYTHING
# =============================================================================


class TestFailures:

    def test_insufficient_stock_leaves_stock_untouched(self, cashier, make_product):
        product = make_product(stock=1)

        with pytest.raises(InsufficientStock) as exc:
            checkout(cart(product_line(product, qty=2)), cashier.id)

        assert exc.value.available == 1
        assert exc.value.requested == 2
        assert stock_service.current_stock(product.id) == 1
        assert _row_counts() == {"transactions": 0, "items": 0, "commissions": 0, "sales": 0}

    def test_quantities_across_lines_are_combined(self, cashier, make_product):
        product = make_product(stock=3)

        with pytest.raises(InsufficientStock):
            checkout(cart(product_line(product, qty=2), product_line(product, qty=2)), cashier.id)

    def test_late_line_failure_rolls_back_earlier_lines(self, cashier, make_product, make_treatment, make_therapist):
        product = make_product(stock=5)
        treatment = make_treatment()
        therapist = make_therapist(is_active=False)

        with pytest.raises(TherapistInactive):
            checkout(cart(product_line(product), treatment_line(treatment, therapist)), cashier.id)

        assert _row_counts() == {"transactions": 0, "items": 0, "commissions": 0, "sales": 0}
        assert stock_service.current_stock(product.id) == 5

    def test_failed_checkout_does_not_consume_a_number(self, cashier, make_product):
        product = make_product(stock=1)
        with pytest.raises(InsufficientStock):
            checkout(cart(product_line(product, qty=2), session="a"), cashier.id)

        tx = checkout(cart(product_line(product), session="b"), cashier.id).transaction
        assert tx.number.endswith("-0001")

    def test_missing_price_for_category(self, cashier, make_product):
        product = make_product(prices={"PASIEN": "100"}, stock=1)
        with pytest.raises(PricingMissing):
            checkout(cart(product_line(product), category_code="RESELLER"), cashier.id)

    def test_inactive_product(self, cashier, make_product):
        product = make_product(stock=1, is_active=False)
        with pytest.raises(ItemInactive):
            checkout(cart(product_line(product)), cashier.id)

    def test_inactive_treatment(self, cashier, categories, make_treatment, make_therapist):
        treatment = make_treatment(is_active=False)
        with pytest.raises(ItemInactive):
            checkout(cart(treatment_line(treatment, make_therapist())), cashier.id)

    def test_unknown_product(self, cashier, categories):
        with pytest.raises(ItemNotFound):
            checkout(cart({"type": "PRODUCT", "product_id": 999, "qty": 1}), cashier.id)

    def test_discount_equal_to_price(self, cashier, make_product):
        product = make_product(prices={"PASIEN": "100"}, stock=1)
        with pytest.raises(DiscountExceedsPrice):
            checkout(cart(product_line(product, discount_type="NOMINAL", discount_value="100")), cashier.id)

    def test_commission_out_of_level_range(self, cashier, categories, levels, make_treatment, make_therapist):
        treatment = make_treatment()
        therapist = make_therapist(level=levels["Junior"], percent="45")
        with pytest.raises(CommissionOutOfRange):
            checkout(cart(treatment_line(treatment, therapist)), cashier.id)

    def test_inactive_cashier(self, db_session, cashier, make_product):
        product = make_product(stock=1)
        cashier.is_active = False
        db_session.commit()

        with pytest.raises(ValidationError):
            checkout(cart(product_line(product)), cashier.id)

        failure = db.session.query(CheckoutFailure).one()
        assert failure.code == "VALIDATION_ERROR"
        assert "inactive" in failure.reason
        assert _row_counts()["transactions"] == 0


# =============================================================================
# DIAGNOSTICS SINK
# =============================================================================


class TestDiagnostics:

    def test_rejected_checkout_is_recorded(self, cashier, make_product):
        product = make_product(stock=1)

        with pytest.raises(InsufficientStock):
            checkout(cart(product_line(product, qty=5), session="diag-1", paid="10"), cashier.id)

        failure = db.session.query(CheckoutFailure).one()
        assert failure.code == "INSUFFICIENT_STOCK"
        assert failure.checkout_session_id == "diag-1"
        assert failure.payload["items_count"] == 1
        assert failure.payload["paid_amount"] == "10.00"
        assert "Insufficient stock" in failure.reason

    def test_sink_failure_does_not_mask_the_error(self, cashier, make_product, monkeypatch):
        product = make_product(stock=1)

        def broken_begin():
            raise RuntimeError("diagnostics database offline")

        monkeypatch.setattr(db.engine, "begin", broken_begin)

        with pytest.raises(InsufficientStock):
            checkout(cart(product_line(product, qty=5)), cashier.id)
