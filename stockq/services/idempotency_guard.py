# stockq/services/idempotency_guard.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockq.models.enums import TxnEvent, TxnModel
from stockq.models.transaction import Transaction


class IdempotencyGuard:
    """
    判断一次逻辑扣减是否已落账（以 transaction 作为见证）

    业务键：
        model='ORDER', event='ISSUE', tenant_id, warehouse_id, product_id,
        order_id, ref_line, quantity_change = -requested

    必须与被保护的写入处于同一 Serializable 事务：两个并发重投不可能都通过检查并都写入，
    数据库会检测到读写冲突并中止其中之一。
    """

    def __init__(self, *, model: TxnModel = TxnModel.ORDER, event: TxnEvent = TxnEvent.ISSUE) -> None:
        self.model = model
        self.event = event

    async def already_applied(
        self,
        session: AsyncSession,
        *,
        tenant_id: int,
        warehouse_id: int,
        product_id: int,
        requested: Decimal,
        order_id: Optional[int],
        ref_line: int = 1,
    ) -> bool:
        order_cond = Transaction.order_id.is_(None) if order_id is None else Transaction.order_id == order_id
        stmt = (
            select(Transaction.id)
            .where(
                Transaction.model == self.model.value,
                Transaction.event == self.event.value,
                Transaction.tenant_id == tenant_id,
                Transaction.warehouse_id == warehouse_id,
                Transaction.product_id == product_id,
                order_cond,
                Transaction.ref_line == int(ref_line),
                Transaction.quantity_change == -requested,
            )
            .limit(1)
        )
        return (await session.execute(stmt)).scalar_one_or_none() is not None
