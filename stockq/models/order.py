# stockq/models/order.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockq.db.base import Base


class Order(Base):
    """
    订单主档（由上游写入，本服务只读）
    """

    __tablename__ = "order"

    id: Mapped[int] = mapped_column(
        sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    tenant_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False, index=True)
    store_id: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True)
    channel_id: Mapped[Optional[int]] = mapped_column(sa.BigInteger, nullable=True)
    warehouse_id: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)

    order_number: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)
    stock_method: Mapped[Optional[str]] = mapped_column(sa.String(32), nullable=True)
    order_id: Mapped[Optional[str]] = mapped_column(sa.String(64), nullable=True)

    reserved_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    issued_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    canceled_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    returned_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    reserved: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    issued: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    canceled: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    returned: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    status: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    activate: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    deleted_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_date: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
