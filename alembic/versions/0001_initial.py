"""initial ledger schema: stock / lot / stock_movement / transaction / stock_balance / order

Revision ID: 0001
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QTY = sa.Numeric(18, 4)


def _ts(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "stock",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.BigInteger(), nullable=False),
        sa.Column("warehouse_id", sa.BigInteger(), nullable=False),
        sa.Column("product_id", sa.BigInteger(), nullable=False),
        sa.Column("minimum", QTY, nullable=False, server_default="0"),
        sa.Column("quantity", QTY, nullable=False, server_default="0"),
        sa.Column("reserve", QTY, nullable=False, server_default="0"),
        sa.Column("on_hand", QTY, nullable=False, server_default="0"),
        sa.Column("status", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("create_date"),
        _ts("update_date"),
        _ts("row_create_date"),
        _ts("row_update_date"),
        sa.UniqueConstraint("tenant_id", "warehouse_id", "product_id", name="uq_stock_tenant_wh_product"),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
    )
    op.create_index("ix_stock_tenant_id", "stock", ["tenant_id"])
    op.create_index("ix_stock_wh_product", "stock", ["warehouse_id", "product_id"])

    op.create_table(
        "lot",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stock_id", sa.Integer(), sa.ForeignKey("stock.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("balance", QTY, nullable=False, server_default="0"),
        sa.Column("cost_fifo", QTY, nullable=False, server_default="0"),
        sa.Column("cost_average", QTY, nullable=False, server_default="0"),
        _ts("created_date"),
        _ts("updated_date"),
        sa.CheckConstraint("balance >= 0", name="ck_lot_balance_non_negative"),
    )
    op.create_index("ix_lot_stock_created", "lot", ["stock_id", "created_date"])

    op.create_table(
        "stock_movement",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.BigInteger(), nullable=False),
        sa.Column("store_id", sa.BigInteger(), nullable=True),
        sa.Column("stock_id", sa.Integer(), sa.ForeignKey("stock.id"), nullable=False),
        sa.Column("lot_id", sa.Integer(), sa.ForeignKey("lot.id"), nullable=False),
        sa.Column("balance_before", QTY, nullable=False),
        sa.Column("balance_after", QTY, nullable=False),
        sa.Column("balance_change", QTY, nullable=False),
        sa.Column("reserve_before", QTY, nullable=False),
        sa.Column("reserve_after", QTY, nullable=False),
        sa.Column("reserve_change", QTY, nullable=False),
        sa.Column("cost_fifo", QTY, nullable=False),
        sa.Column("cost_average", QTY, nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("model", sa.String(length=32), nullable=False),
        _ts("created_date"),
        _ts("updated_date"),
    )
    op.create_index("ix_stock_movement_stock_id", "stock_movement", ["stock_id"])
    op.create_index("ix_stock_movement_lot_id", "stock_movement", ["lot_id"])

    op.create_table(
        "transaction",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("model", sa.String(length=32), nullable=False),
        sa.Column("event", sa.String(length=32), nullable=False),
        sa.Column("tenant_id", sa.BigInteger(), nullable=False),
        sa.Column("product_id", sa.BigInteger(), nullable=False),
        sa.Column("warehouse_id", sa.BigInteger(), nullable=False),
        sa.Column("stock_id", sa.Integer(), sa.ForeignKey("stock.id"), nullable=False),
        sa.Column("order_id", sa.BigInteger(), nullable=True),
        sa.Column("order_number", sa.String(length=64), nullable=True),
        sa.Column("ref_line", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("quantity_old", QTY, nullable=False),
        sa.Column("quantity_change", QTY, nullable=False),
        sa.Column("quantity_new", QTY, nullable=False),
        sa.Column("reserve_old", QTY, nullable=False),
        sa.Column("reserve_change", QTY, nullable=False),
        sa.Column("reserve_new", QTY, nullable=False),
        sa.Column("on_hand_old", QTY, nullable=False),
        sa.Column("on_hand_change", QTY, nullable=False),
        sa.Column("on_hand_new", QTY, nullable=False),
        sa.Column("status", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("create_date"),
        _ts("update_date"),
        _ts("row_create_date"),
        _ts("row_update_date"),
    )
    op.create_index(
        "ix_transaction_idem",
        "transaction",
        ["tenant_id", "warehouse_id", "product_id", "order_id", "ref_line"],
    )
    op.create_index("ix_transaction_stock", "transaction", ["stock_id"])

    op.create_table(
        "stock_balance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stock_id", sa.Integer(), sa.ForeignKey("stock.id"), nullable=False),
        sa.Column("year_month", sa.Date(), nullable=False),
        sa.Column("balance", QTY, nullable=False, server_default="0"),
        sa.Column("reserve", QTY, nullable=False, server_default="0"),
        sa.UniqueConstraint("stock_id", "year_month", name="uq_stock_balance_stock_month"),
    )

    op.create_table(
        "order",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.BigInteger(), nullable=False),
        sa.Column("store_id", sa.BigInteger(), nullable=True),
        sa.Column("channel_id", sa.BigInteger(), nullable=True),
        sa.Column("warehouse_id", sa.BigInteger(), nullable=False),
        sa.Column("order_number", sa.String(length=64), nullable=True),
        sa.Column("stock_method", sa.String(length=32), nullable=True),
        sa.Column("order_id", sa.String(length=64), nullable=True),
        sa.Column("reserved_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("issued_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("returned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reserved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("issued", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("canceled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("returned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("activate", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_date", sa.DateTime(timezone=True), nullable=True),
        _ts("created_date"),
        _ts("updated_date"),
    )
    op.create_index("ix_order_tenant_id", "order", ["tenant_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_order_tenant_id", table_name="order")
    op.drop_table("order")
    op.drop_table("stock_balance")
    op.drop_index("ix_transaction_stock", table_name="transaction")
    op.drop_index("ix_transaction_idem", table_name="transaction")
    op.drop_table("transaction")
    op.drop_index("ix_stock_movement_lot_id", table_name="stock_movement")
    op.drop_index("ix_stock_movement_stock_id", table_name="stock_movement")
    op.drop_table("stock_movement")
    op.drop_index("ix_lot_stock_created", table_name="lot")
    op.drop_table("lot")
    op.drop_index("ix_stock_wh_product", table_name="stock")
    op.drop_index("ix_stock_tenant_id", table_name="stock")
    op.drop_table("stock")
