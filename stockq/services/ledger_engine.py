# stockq/services/ledger_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stockq.core.errors import InsufficientStock
from stockq.core.tx import serializable_tx
from stockq.models.enums import TxnEvent, TxnModel
from stockq.obs.metrics import ledger_items_applied_total, ledger_items_skipped_total
from stockq.services.audit_writer import AuditWriter
from stockq.services.idempotency_guard import IdempotencyGuard
from stockq.services.lot_store import LotStore
from stockq.services.task_intake import DeductionTask

log = logging.getLogger("stockq.ledger")


@dataclass(frozen=True)
class ItemResult:
    ref_line: int
    product_id: int
    stock_id: int
    requested: Decimal
    quantity_old: Decimal
    quantity_new: Decimal
    applied: bool
    transaction_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ref_line": self.ref_line,
            "product_id": self.product_id,
            "stock_id": self.stock_id,
            "requested": str(self.requested),
            "quantity_old": str(self.quantity_old),
            "quantity_new": str(self.quantity_new),
            "applied": self.applied,
            "transaction_id": self.transaction_id,
        }


@dataclass
class DeductionResult:
    tenant_id: int
    warehouse_id: int
    order_id: int
    items: List[ItemResult] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return sum(1 for it in self.items if it.applied)

    @property
    def skipped_count(self) -> int:
        return sum(1 for it in self.items if not it.applied)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "warehouse_id": self.warehouse_id,
            "order_id": self.order_id,
            "applied": self.applied_count,
            "skipped": self.skipped_count,
            "items": [it.to_dict() for it in self.items],
        }


class StockLedgerEngine:
    """
    库存账本事务引擎（订单扣减）

    单个 Serializable 事务内逐行处理：
      1) 查 stock (tenant, warehouse, product)，不存在则以 quantity=0 懒创建
      2) 幂等守卫：同业务键的 ORDER/ISSUE 记录已存在 → 跳过该行
      3) quantity < 需求 → InsufficientStock，整单回滚（不做部分扣减）
      4) 写 stock 新余额 + transaction 审计
      5) 全部行成功后统一 commit

    串行化冲突 / 断连在事务层被归类为 TransientDatabaseError，由调用方作为全新尝试重试。
    """

    def __init__(
        self,
        store: Optional[LotStore] = None,
        guard: Optional[IdempotencyGuard] = None,
        audit: Optional[AuditWriter] = None,
    ) -> None:
        self.store = store or LotStore()
        self.guard = guard or IdempotencyGuard(model=TxnModel.ORDER, event=TxnEvent.ISSUE)
        self.audit = audit or AuditWriter()

    async def deduct(self, session: AsyncSession, task: DeductionTask) -> DeductionResult:
        result = DeductionResult(
            tenant_id=task.tenant_id,
            warehouse_id=task.warehouse_id,
            order_id=task.order_id,
        )

        async with serializable_tx(session, op="order_deduct"):
            for ref_line, item in enumerate(task.items, start=1):
                applied = await self._apply_item(
                    session, task, ref_line, item.product_id, item.quantity
                )
                result.items.append(applied)

        ledger_items_applied_total.inc(result.applied_count)
        ledger_items_skipped_total.inc(result.skipped_count)
        log.info(
            "order processed: tenant=%s warehouse=%s order=%s applied=%d skipped=%d",
            task.tenant_id,
            task.warehouse_id,
            task.order_id,
            result.applied_count,
            result.skipped_count,
        )
        return result

    async def _apply_item(
        self,
        session: AsyncSession,
        task: DeductionTask,
        ref_line: int,
        product_id: int,
        requested: Decimal,
    ) -> ItemResult:
        stock = await self.store.get_or_create_stock(
            session,
            tenant_id=task.tenant_id,
            warehouse_id=task.warehouse_id,
            product_id=product_id,
        )
        if stock.created:
            log.info(
                "stock created lazily: tenant=%s warehouse=%s product=%s",
                task.tenant_id,
                task.warehouse_id,
                product_id,
            )

        # ---------- 幂等 ----------
        if await self.guard.already_applied(
            session,
            tenant_id=task.tenant_id,
            warehouse_id=task.warehouse_id,
            product_id=product_id,
            requested=requested,
            order_id=task.order_id,
            ref_line=ref_line,
        ):
            log.info(
                "deduction already applied, skip: order=%s line=%d product=%s",
                task.order_id,
                ref_line,
                product_id,
            )
            return ItemResult(
                ref_line=ref_line,
                product_id=product_id,
                stock_id=stock.id,
                requested=requested,
                quantity_old=stock.quantity,
                quantity_new=stock.quantity,
                applied=False,
            )

        # ---------- 余额校验 ----------
        if stock.quantity < requested:
            raise InsufficientStock(
                f"not enough stock for product_id={product_id}, current: {stock.quantity}, required: {requested}",
                context={
                    "tenant_id": task.tenant_id,
                    "warehouse_id": task.warehouse_id,
                    "product_id": product_id,
                    "order_id": task.order_id,
                },
                details=[
                    {
                        "type": "shortage",
                        "path": f"items[{ref_line - 1}]",
                        "required_qty": str(requested),
                        "available_qty": str(stock.quantity),
                        "short_qty": str(requested - stock.quantity),
                        "reason": "insufficient_stock",
                    }
                ],
            )

        # ---------- 落账 ----------
        new_qty = stock.quantity - requested
        await self.store.set_stock_balance(
            session,
            stock_id=stock.id,
            quantity=new_qty,
            on_hand=stock.on_hand - requested,
        )
        txn_id = await self.audit.write_transaction(
            session,
            model=TxnModel.ORDER,
            event=TxnEvent.ISSUE,
            tenant_id=task.tenant_id,
            warehouse_id=task.warehouse_id,
            product_id=product_id,
            stock_id=stock.id,
            quantity_old=stock.quantity,
            quantity_change=-requested,
            reserve_old=stock.reserve,
            on_hand_old=stock.on_hand,
            order_id=task.order_id,
            order_number=task.order_number or None,
            ref_line=ref_line,
        )
        return ItemResult(
            ref_line=ref_line,
            product_id=product_id,
            stock_id=stock.id,
            requested=requested,
            quantity_old=stock.quantity,
            quantity_new=new_qty,
            applied=True,
            transaction_id=txn_id,
        )
