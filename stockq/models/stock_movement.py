# stockq/models/stock_movement.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockq.db.base import Base
from stockq.models.stock import QTY


class StockMovement(Base):
    """
    批次流水（只增不改）：FIFO 出库每触及一个 lot 写一条

    balance_* / reserve_* 记录的是库存（stock）层面的滚动余额，
    cost_* 为该 lot 的成本快照。
    """

    __tablename__ = "stock_movement"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    tenant_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    store_id: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True)
    stock_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("stock.id"), nullable=False, index=True)
    lot_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("lot.id"), nullable=False, index=True)

    balance_before: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    balance_change: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    reserve_before: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    reserve_after: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    reserve_change: Mapped[Decimal] = mapped_column(QTY, nullable=False)

    cost_fifo: Mapped[Decimal] = mapped_column(QTY, nullable=False)
    cost_average: Mapped[Decimal] = mapped_column(QTY, nullable=False)

    action: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    model: Mapped[str] = mapped_column(sa.String(32), nullable=False)

    created_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<StockMovement stock={self.stock_id} lot={self.lot_id} "
            f"change={self.balance_change} after={self.balance_after}>"
        )
