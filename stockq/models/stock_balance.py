# stockq/models/stock_balance.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stockq.db.base import Base
from stockq.models.stock import QTY


class StockBalance(Base):
    """
    按月分桶的库存余额（year_month 为当月 1 号）

    FIFO 出库时，当月及之后的桶同步扣减。
    """

    __tablename__ = "stock_balance"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    stock_id: Mapped[int] = mapped_column(sa.Integer, sa.ForeignKey("stock.id"), nullable=False)
    year_month: Mapped[date] = mapped_column(sa.Date, nullable=False)
    balance: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))
    reserve: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))

    __table_args__ = (UniqueConstraint("stock_id", "year_month", name="uq_stock_balance_stock_month"),)
