"""Checkout core schema: catalog, people, ledger, transactions, diagnostics

Revision ID: 20261019_checkout_core
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_checkout_core"
down_revision = None
branch_labels = None
depends_on = None


def _money(name, nullable=False, **kw):
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, **kw)


def _percent(name, nullable=True, **kw):
    return sa.Column(name, sa.Numeric(5, 2), nullable=nullable, **kw)


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade():
    op.create_table(
        "customer_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customer_categories_code", "customer_categories", ["code"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(64), nullable=True, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("unit", sa.String(32), nullable=True),
        _money("cost_price"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_active_name", "products", ["is_active", "name"])

    op.create_table(
        "product_prices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("customer_categories.id"), nullable=False),
        _money("price"),
        sa.UniqueConstraint("product_id", "category_id", name="uq_product_prices_product_category"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_prices_product_id", "product_prices", ["product_id"])
    op.create_index("ix_product_prices_category_id", "product_prices", ["category_id"])

    op.create_table(
        "treatments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        _money("cost_price"),
        _money("sell_price"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("customer_categories.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_members_member_code", "members", ["member_code"], unique=True)
    op.create_index("ix_members_category_id", "members", ["category_id"])

    op.create_table(
        "therapist_levels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(64), nullable=False, unique=True),
        _percent("default_commission"),
        _percent("min_commission", nullable=False),
        _percent("max_commission", nullable=False),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "therapists",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("level_id", sa.Integer(), sa.ForeignKey("therapist_levels.id"), nullable=True),
        _percent("commission_percent"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_therapists_level_id", "therapists", ["level_id"])

    op.create_table(
        "store_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_name", sa.String(120), nullable=False),
        _percent("commission_default_percent"),
        sa.Column("updated_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sequence_key", sa.String(64), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("sequence_key", name="uq_doc_sequences_key"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_sequences_sequence_key", "document_sequences", ["sequence_key"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("number", sa.String(64), nullable=False),
        sa.Column("checkout_session_id", sa.String(128), nullable=False),
        sa.Column("cashier_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id"), nullable=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("customer_categories.id"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False),
        _money("paid_amount"),
        _money("subtotal"),
        _money("discount_total"),
        _money("total"),
        _money("cost_total"),
        _money("profit_total"),
        _money("commission_total"),
        _money("change_amount"),
        _created_at(),
        sa.UniqueConstraint("checkout_session_id", name="uq_transactions_checkout_session"),
        sa.UniqueConstraint("number", name="uq_transactions_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_transactions_created", "transactions", ["created_at"])
    op.create_index("ix_transactions_cashier_id", "transactions", ["cashier_id"])
    op.create_index("ix_transactions_member_id", "transactions", ["member_id"])
    op.create_index("ix_transactions_category_id", "transactions", ["category_id"])

    op.create_table(
        "transaction_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("treatment_id", sa.Integer(), sa.ForeignKey("treatments.id"), nullable=True),
        sa.Column("therapist_id", sa.Integer(), sa.ForeignKey("therapists.id"), nullable=True),
        sa.Column("assistant_id", sa.Integer(), sa.ForeignKey("therapists.id"), nullable=True),
        sa.Column("qty", sa.Integer(), nullable=False),
        _money("unit_price"),
        sa.Column("discount_type", sa.String(16), nullable=False),
        _money("discount_value"),
        _money("line_subtotal"),
        _money("line_discount"),
        _money("line_total"),
        _money("cost_price"),
        _money("profit"),
        sa.CheckConstraint("qty > 0", name="ck_transaction_items_qty_positive"),
        sa.CheckConstraint("line_total > 0", name="ck_transaction_items_total_positive"),
        sqlite_autoincrement=True,
    )
    for column in ("transaction_id", "product_id", "treatment_id", "therapist_id", "assistant_id"):
        op.create_index(f"ix_transaction_items_{column}", "transaction_items", [column])

    op.create_table(
        "commissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("transaction_item_id", sa.Integer(), sa.ForeignKey("transaction_items.id"), nullable=False),
        sa.Column("therapist_id", sa.Integer(), sa.ForeignKey("therapists.id"), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        _percent("percent", nullable=False),
        _money("base_amount"),
        _money("amount"),
        _created_at(),
        sa.UniqueConstraint("transaction_item_id", "role", name="uq_commissions_item_role"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_commissions_transaction_item_id", "commissions", ["transaction_item_id"])
    op.create_index("ix_commissions_therapist_id", "commissions", ["therapist_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_cost"),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=True),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_type", "stock_movements", ["type"])
    op.create_index("ix_stock_movements_transaction_id", "stock_movements", ["transaction_id"])
    op.create_index("ix_stock_movements_product_type", "stock_movements", ["product_id", "type"])
    op.create_index("ix_stock_movements_created", "stock_movements", ["created_at"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("event_category", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _created_at(),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_event_category", "audit_events", ["event_category"])
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])

    op.create_table(
        "checkout_failures",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        sa.Column("checkout_session_id", sa.String(128), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_checkout_failures_code", "checkout_failures", ["code"])
    op.create_index("ix_checkout_failures_checkout_session_id", "checkout_failures", ["checkout_session_id"])
    op.create_index("ix_checkout_failures_created_at", "checkout_failures", ["created_at"])


def downgrade():
    for table in (
        "checkout_failures",
        "audit_events",
        "stock_movements",
        "commissions",
        "transaction_items",
        "transactions",
        "document_sequences",
        "store_settings",
        "therapists",
        "therapist_levels",
        "members",
        "treatments",
        "product_prices",
        "products",
        "users",
        "customer_categories",
    ):
        op.drop_table(table)
