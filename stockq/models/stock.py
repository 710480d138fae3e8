# stockq/models/stock.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockq.db.base import Base

QTY = sa.Numeric(18, 4)


class Stock(Base):
    """
    库存余额维度 (tenant_id, warehouse_id, product_id)

    - quantity 为库存唯一真实来源，只允许账本引擎修改
    - 首次引用时懒创建（quantity=0），从不删除，只通过 status 软停用
    - on_hand 与 quantity 绑定；reserve 由预占流程维护，出库不改动
    """

    __tablename__ = "stock"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    tenant_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False, index=True)
    warehouse_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    product_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)

    minimum: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))
    quantity: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))
    reserve: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))
    on_hand: Mapped[Decimal] = mapped_column(QTY, nullable=False, default=Decimal("0"))
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
        UniqueConstraint("tenant_id", "warehouse_id", "product_id", name="uq_stock_tenant_wh_product"),
        CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        Index("ix_stock_wh_product", "warehouse_id", "product_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Stock tenant={self.tenant_id} wh={self.warehouse_id} "
            f"product={self.product_id} qty={self.quantity}>"
        )
