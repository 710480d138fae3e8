# stockq/models/transaction.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockq.db.base import Base
from stockq.models.stock import QTY


class Transaction(Base):
    """
    库存变动审计（只增不改）

    同时作为幂等见证：
        (model, event, tenant_id, warehouse_id, product_id, order_id, ref_line, quantity_change)
    命中即视为该行扣减已生效。ref_line 为订单内行号（从 1 开始），
    同一订单出现两行同商品同数量时也能区分。
    """

    __tablename__ = "transaction"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    model: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    event: Mapped[str] = mapped_column(sa.String(32), nullable=False)

    tenant_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    product_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    warehouse_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    stock_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("stock.id"), nullable=False)

    order_id: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True)
    order_number: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    ref_line: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)

    quantity_old: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    quantity_change: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    quantity_new: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    reserve_old: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    reserve_change: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    reserve_new: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    on_hand_old: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    on_hand_change: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    on_hand_new: Mapped[Decimal] = mapped_column(QTY, nullable=False)

    status: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    create_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    update_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    row_create_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    row_update_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        sa.Index(
            "ix_transaction_idem",
            "tenant_id",
            "warehouse_id",
            "product_id",
            "order_id",
            "ref_line",
        ),
        sa.Index("ix_transaction_stock", "stock_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.model}/{self.event} stock={self.stock_id} "
            f"old={self.quantity_old} change={self.quantity_change} new={self.quantity_new}>"
        )
