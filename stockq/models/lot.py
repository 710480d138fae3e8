# stockq/models/lot.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockq.db.base import Base
from stockq.models.stock import QTY


class Lot(Base):
    """
    批次（入库时创建，出库时由 FIFO 分配器按 created_date 从旧到新消耗）

    启用批次管理时：SUM(lot.balance) == stock.quantity
    """

    __tablename__ = "lot"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    stock_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("stock.id", ondelete="RESTRICT"), nullable=False
    )

    balance: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))
    cost_fifo: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))
    cost_average: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))

    created_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_lot_balance_non_negative"),
        Index("ix_lot_stock_created", "stock_id", "created_date"),
    )

    def __repr__(self) -> str:
        return f"<Lot id={self.id} stock={self.stock_id} balance={self.balance}>"
