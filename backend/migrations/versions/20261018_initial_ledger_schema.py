"""Initial OTC desk schema: orders, inventory ledger, inventory state, settings

Revision ID: 20261018_initial_ledger
Revises:
Create Date: 2026-10-18 09:00:00.000000

Amounts, prices and rates are fixed-point BIGINT columns (value * 10**8).
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("amount_usdt", sa.BigInteger(), nullable=False),
        sa.Column("payment_method", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="public"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="new"),
        sa.Column("sell_price_ils_per_usdt", sa.BigInteger(), nullable=True),
        sa.Column("buy_avg_cost_ils_per_usdt", sa.BigInteger(), nullable=True),
        sa.Column("usd_ils_rate", sa.BigInteger(), nullable=True),
        sa.Column("profit_ils", sa.BigInteger(), nullable=True),
        sa.Column("profit_usd", sa.BigInteger(), nullable=True),
        sa.Column("cancel_note", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_orders_status", "orders", ["status"], unique=False)
    op.create_index("ix_orders_payment_method", "orders", ["payment_method"], unique=False)
    op.create_index("ix_orders_status_created", "orders", ["status", "created_at"], unique=False)
    op.create_index("ix_orders_status_completed", "orders", ["status", "completed_at"], unique=False)

    op.create_table(
        "inventory_state",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("usdt_balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_cost_ils", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "inventory_ledger",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entry_type", sa.String(length=16), nullable=False),
        sa.Column("amount_usdt", sa.BigInteger(), nullable=False),
        sa.Column("unit_price_ils_per_usdt", sa.BigInteger(), nullable=True),
        sa.Column("cost_delta_ils", sa.BigInteger(), nullable=False),
        sa.Column("balance_after_usdt", sa.BigInteger(), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=True),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_ledger_entry_type", "inventory_ledger", ["entry_type"], unique=False)
    op.create_index("ix_inventory_ledger_order_id", "inventory_ledger", ["order_id"], unique=False)
    op.create_index("ix_inventory_ledger_created_at", "inventory_ledger", ["created_at"], unique=False)
    op.create_index("ix_inventory_ledger_type_created", "inventory_ledger", ["entry_type", "created_at"], unique=False)

    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sell_price_ils_per_usdt", sa.BigInteger(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Singleton rows
    op.execute("INSERT INTO inventory_state (id, usdt_balance, total_cost_ils, version_id) VALUES (1, 0, 0, 1)")
    op.execute("INSERT INTO app_settings (id) VALUES (1)")


def downgrade():
    op.drop_table("app_settings")
    op.drop_index("ix_inventory_ledger_type_created", table_name="inventory_ledger")
    op.drop_index("ix_inventory_ledger_created_at", table_name="inventory_ledger")
    op.drop_index("ix_inventory_ledger_order_id", table_name="inventory_ledger")
    op.drop_index("ix_inventory_ledger_entry_type", table_name="inventory_ledger")
    op.drop_table("inventory_ledger")
    op.drop_table("inventory_state")
    op.drop_index("ix_orders_status_completed", table_name="orders")
    op.drop_index("ix_orders_status_created", table_name="orders")
    op.drop_index("ix_orders_payment_method", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_table("orders")
