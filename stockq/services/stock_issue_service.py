# stockq/services/stock_issue_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stockq.core.errors import InsufficientStock
from stockq.core.tx import serializable_tx
from stockq.models.enums import TxnEvent, TxnModel
from stockq.services.audit_writer import AuditWriter
from stockq.services.fifo_allocator import FifoAllocator, MovementLeg
from stockq.services.lot_store import LotStore

log = logging.getLogger("stockq.stock_issue")
UTC = timezone.utc


@dataclass(frozen=True)
class StockIssueCommand:
    tenant_id: int
    warehouse_id: int
    product_id: int
    quantity: Decimal
    store_id: Optional[int] = None
    model: str = TxnModel.STOCK.value


@dataclass
class StockIssueResult:
    stock_id: int
    quantity_old: Decimal
    quantity_new: Decimal
    transaction_id: int
    legs: List[MovementLeg] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stock_id": self.stock_id,
            "quantity_old": str(self.quantity_old),
            "balance": str(self.quantity_new),
            "transaction_id": self.transaction_id,
            "movements": [leg.to_dict() for leg in self.legs],
        }


def month_start(d: date) -> date:
    return date(d.year, d.month, 1)


class StockIssueService:
    """
    直接出库（FIFO 批次分配）：

    单个 Serializable 事务内：
      1) 查 stock（不存在则懒创建为 0，随后必然库存不足）
      2) stock.quantity 粗校验 → InsufficientStock
      3) stock 扣减 + 当月及之后的 stock_balance 分桶扣减
      4) FIFO 逐批扣减 lot，每批一条 stock_movement
         批次总余额不足 → InsufficientLotQuantity（独立于第 2 步的第二道校验）
      5) transaction 审计一条
    任一步失败整单回滚。
    """

    def __init__(
        self,
        store: Optional[LotStore] = None,
        allocator: Optional[FifoAllocator] = None,
        audit: Optional[AuditWriter] = None,
        today: Callable[[], date] = lambda: datetime.now(UTC).date(),
    ) -> None:
        self.store = store or LotStore()
        self.audit = audit or AuditWriter()
        self.allocator = allocator or FifoAllocator(store=self.store, audit=self.audit)
        self.today = today

    async def issue(self, session: AsyncSession, cmd: StockIssueCommand) -> StockIssueResult:
        async with serializable_tx(session, op="stock_issue"):
            stock = await self.store.get_or_create_stock(
                session,
                tenant_id=cmd.tenant_id,
                warehouse_id=cmd.warehouse_id,
                product_id=cmd.product_id,
            )

            if stock.quantity < cmd.quantity:
                raise InsufficientStock(
                    "insufficient stock balance",
                    context={
                        "tenant_id": cmd.tenant_id,
                        "warehouse_id": cmd.warehouse_id,
                        "product_id": cmd.product_id,
                    },
                    details=[
                        {
                            "type": "shortage",
                            "path": "quantity",
                            "required_qty": str(cmd.quantity),
                            "available_qty": str(stock.quantity),
                            "short_qty": str(cmd.quantity - stock.quantity),
                            "reason": "insufficient_stock",
                        }
                    ],
                )

            new_qty = stock.quantity - cmd.quantity
            await self.store.set_stock_balance(
                session,
                stock_id=stock.id,
                quantity=new_qty,
                on_hand=stock.on_hand - cmd.quantity,
            )
            await self.store.decrement_period_balances(
                session,
                stock_id=stock.id,
                qty=cmd.quantity,
                from_month=month_start(self.today()),
            )

            legs = await self.allocator.allocate(
                session,
                stock=stock,
                qty=cmd.quantity,
                tenant_id=cmd.tenant_id,
                store_id=cmd.store_id,
                model=cmd.model,
            )

            txn_id = await self.audit.write_transaction(
                session,
                model=cmd.model,
                event=TxnEvent.ISSUE,
                tenant_id=cmd.tenant_id,
                warehouse_id=cmd.warehouse_id,
                product_id=cmd.product_id,
                stock_id=stock.id,
                quantity_old=stock.quantity,
                quantity_change=-cmd.quantity,
                reserve_old=stock.reserve,
                on_hand_old=stock.on_hand,
            )

        log.info(
            "stock issued: tenant=%s warehouse=%s product=%s qty=%s lots=%d balance=%s",
            cmd.tenant_id,
            cmd.warehouse_id,
            cmd.product_id,
            cmd.quantity,
            len(legs),
            new_qty,
        )
        return StockIssueResult(
            stock_id=stock.id,
            quantity_old=stock.quantity,
            quantity_new=new_qty,
            transaction_id=txn_id,
            legs=legs,
        )
