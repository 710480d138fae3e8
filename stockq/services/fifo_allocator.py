# stockq/services/fifo_allocator.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stockq.core.errors import InsufficientLotQuantity
from stockq.services.audit_writer import AuditWriter
from stockq.services.lot_store import LotRow, LotStore, StockRow

ZERO = Decimal("0")


@dataclass(frozen=True)
class LotTake:
    lot: LotRow
    take: Decimal


@dataclass(frozen=True)
class MovementLeg:
    lot_id: int
    movement_id: int
    lot_balance_before: Decimal
    lot_balance_after: Decimal
    change: Decimal
    balance_before: Decimal
    balance_after: Decimal
    cost_fifo: Decimal
    cost_average: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lot_id": self.lot_id,
            "movement_id": self.movement_id,
            "lot_balance_before": str(self.lot_balance_before),
            "lot_balance_after": str(self.lot_balance_after),
            "change": str(self.change),
            "balance_before": str(self.balance_before),
            "balance_after": str(self.balance_after),
            "cost_fifo": str(self.cost_fifo),
            "cost_average": str(self.cost_average),
        }


def plan_fifo(lots: List[LotRow], need: Decimal) -> tuple[List[LotTake], Decimal]:
    """
    贪心切片：按传入顺序（已按 created_date ASC 排好）逐批取 min(剩余, 批次余额)。

    返回 (计划, 未满足数量)；精确扣减，不做取整。
    """
    remaining = need
    plan: List[LotTake] = []
    for lot in lots:
        if remaining <= ZERO:
            break
        take = min(remaining, lot.balance)
        if take > ZERO:
            plan.append(LotTake(lot=lot, take=take))
            remaining -= take
    return plan, remaining


class FifoAllocator:
    """
    FIFO 批次分配器

    • 排序：lot.created_date ASC（最旧先出），id ASC 作 tie-breaker
    • 每触及一个 lot 写一条 stock_movement
    • 批次总余额不足时整单失败（InsufficientLotQuantity），
      这是独立于 stock.quantity 的第二道校验，两者都必须通过

    使用方式（必须由外层控制事务）：

        async with serializable_tx(session, op="stock_issue"):
            legs = await fifo.allocate(session, stock=stock, qty=..., ...)
    """

    def __init__(self, store: Optional[LotStore] = None, audit: Optional[AuditWriter] = None) -> None:
        self.store = store or LotStore()
        self.audit = audit or AuditWriter()

    async def plan(self, session: AsyncSession, *, stock_id: int, need: Decimal) -> List[LotTake]:
        """（只读）计算 FIFO 计划；批次余额不足直接抛错。"""
        lots = await self.store.open_lots(session, stock_id=stock_id)
        plan, remaining = plan_fifo(lots, need)
        if remaining > ZERO:
            available = need - remaining
            raise InsufficientLotQuantity(
                "not enough lot quantity to fulfill the request",
                context={"stock_id": int(stock_id)},
                details=[
                    {
                        "type": "shortage",
                        "path": "fifo.plan",
                        "required_qty": str(need),
                        "available_qty": str(available),
                        "short_qty": str(remaining),
                        "reason": "insufficient_lot_quantity",
                    }
                ],
            )
        return plan

    async def allocate(
        self,
        session: AsyncSession,
        *,
        stock: StockRow,
        qty: Decimal,
        tenant_id: int,
        store_id: Optional[int],
        model: str,
    ) -> List[MovementLeg]:
        """
        按 FIFO 计划逐批扣减；balance_* 记录 stock 层面的滚动余额。
        """
        plan = await self.plan(session, stock_id=stock.id, need=qty)

        balance = stock.quantity
        legs: List[MovementLeg] = []
        for step in plan:
            lot, take = step.lot, step.take
            await self.store.deduct_lot(session, lot_id=lot.id, qty=take)
            movement_id = await self.audit.write_movement(
                session,
                tenant_id=tenant_id,
                store_id=store_id,
                stock_id=stock.id,
                lot_id=lot.id,
                balance_before=balance,
                change=-take,
                reserve_before=stock.reserve,
                cost_fifo=lot.cost_fifo,
                cost_average=lot.cost_average,
                model=model,
            )
            legs.append(
                MovementLeg(
                    lot_id=lot.id,
                    movement_id=movement_id,
                    lot_balance_before=lot.balance,
                    lot_balance_after=lot.balance - take,
                    change=-take,
                    balance_before=balance,
                    balance_after=balance - take,
                    cost_fifo=lot.cost_fifo,
                    cost_average=lot.cost_average,
                )
            )
            balance -= take
        return legs
