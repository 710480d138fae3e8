# stockq/services/lot_store.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from stockq.models.lot import Lot
from stockq.models.stock import Stock
from stockq.models.stock_balance import StockBalance


@dataclass(frozen=True)
class StockRow:
    id: int
    tenant_id: int
    warehouse_id: int
    product_id: int
    quantity: Decimal
    reserve: Decimal
    on_hand: Decimal
    created: bool = False


@dataclass(frozen=True)
class LotRow:
    id: int
    balance: Decimal
    cost_fifo: Decimal
    cost_average: Decimal
    created_date: datetime


def _dec(v) -> Decimal:
    return v if isinstance(v, Decimal) else Decimal(str(v or 0))


class LotStore:
    """
    stock / lot / stock_balance 数据访问（只做读写，不做业务判断）

    所有方法都运行在调用方的事务里，不自行 commit。
    """

    # ---------------------------------------------------------------
    # stock
    # ---------------------------------------------------------------
    async def find_stock(
        self,
        session: AsyncSession,
        *,
        tenant_id: int,
        warehouse_id: int,
        product_id: int,
    ) -> Optional[StockRow]:
        row = (
            await session.execute(
                select(
                    Stock.id,
                    Stock.quantity,
                    Stock.reserve,
                    Stock.on_hand,
                ).where(
                    Stock.tenant_id == tenant_id,
                    Stock.warehouse_id == warehouse_id,
                    Stock.product_id == product_id,
                )
            )
        ).first()
        if row is None:
            return None
        return StockRow(
            id=int(row.id),
            tenant_id=int(tenant_id),
            warehouse_id=int(warehouse_id),
            product_id=int(product_id),
            quantity=_dec(row.quantity),
            reserve=_dec(row.reserve),
            on_hand=_dec(row.on_hand),
        )

    async def get_or_create_stock(
        self,
        session: AsyncSession,
        *,
        tenant_id: int,
        warehouse_id: int,
        product_id: int,
    ) -> StockRow:
        """
        懒创建：不存在则以 quantity=0 建档。

        并发首建同一 (tenant, warehouse, product) 时后到者撞唯一键，
        由事务层归类为瞬时错误，整单重试时即可读到已存在的行。
        """
        found = await self.find_stock(
            session, tenant_id=tenant_id, warehouse_id=warehouse_id, product_id=product_id
        )
        if found is not None:
            return found

        zero = Decimal("0")
        new_id = (
            await session.execute(
                insert(Stock)
                .values(
                    tenant_id=tenant_id,
                    warehouse_id=warehouse_id,
                    product_id=product_id,
                    minimum=zero,
                    quantity=zero,
                    reserve=zero,
                    on_hand=zero,
                    status=True,
                )
                .returning(Stock.id)
            )
        ).scalar_one()
        return StockRow(
            id=int(new_id),
            tenant_id=int(tenant_id),
            warehouse_id=int(warehouse_id),
            product_id=int(product_id),
            quantity=zero,
            reserve=zero,
            on_hand=zero,
            created=True,
        )

    async def set_stock_balance(
        self,
        session: AsyncSession,
        *,
        stock_id: int,
        quantity: Decimal,
        on_hand: Decimal,
    ) -> None:
        await session.execute(
            update(Stock)
            .where(Stock.id == stock_id)
            .values(
                quantity=quantity,
                on_hand=on_hand,
                update_date=func.now(),
                row_update_date=func.now(),
            )
            .execution_options(synchronize_session=False)
        )

    # ---------------------------------------------------------------
    # lot
    # ---------------------------------------------------------------
    async def open_lots(self, session: AsyncSession, *, stock_id: int) -> List[LotRow]:
        """balance > 0 的批次，按 created_date 从旧到新（id 作稳定 tie-breaker）"""
        rows = (
            await session.execute(
                select(Lot.id, Lot.balance, Lot.cost_fifo, Lot.cost_average, Lot.created_date)
                .where(Lot.stock_id == stock_id, Lot.balance > 0)
                .order_by(Lot.created_date.asc(), Lot.id.asc())
            )
        ).all()
        return [
            LotRow(
                id=int(r.id),
                balance=_dec(r.balance),
                cost_fifo=_dec(r.cost_fifo),
                cost_average=_dec(r.cost_average),
                created_date=r.created_date,
            )
            for r in rows
        ]

    async def deduct_lot(self, session: AsyncSession, *, lot_id: int, qty: Decimal) -> None:
        await session.execute(
            update(Lot)
            .where(Lot.id == lot_id)
            .values(balance=Lot.balance - qty, updated_date=func.now())
            .execution_options(synchronize_session=False)
        )

    # ---------------------------------------------------------------
    # stock_balance（按月分桶）
    # ---------------------------------------------------------------
    async def decrement_period_balances(
        self,
        session: AsyncSession,
        *,
        stock_id: int,
        qty: Decimal,
        from_month: date,
    ) -> int:
        res = await session.execute(
            update(StockBalance)
            .where(StockBalance.stock_id == stock_id, StockBalance.year_month >= from_month)
            .values(balance=StockBalance.balance - qty)
            .execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)
