# stockq/services/audit_writer.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from stockq.models.enums import MovementAction, TxnEvent, TxnModel
from stockq.models.stock_movement import StockMovement
from stockq.models.transaction import Transaction

ZERO = Decimal("0")


def _v(x: Union[str, TxnModel, TxnEvent]) -> str:
    return x.value if isinstance(x, (TxnModel, TxnEvent)) else str(x)


class AuditWriter:
    """
    审计写入（只增不改）：

    - transaction：每个被修改的 stock、每个任务行一条
    - stock_movement：FIFO 出库每触及一个 lot 一条

    写入失败不做补偿，直接向外抛，由外层事务整体回滚。
    """

    async def write_transaction(
        self,
        session: AsyncSession,
        *,
        model: Union[str, TxnModel],
        event: Union[str, TxnEvent],
        tenant_id: int,
        warehouse_id: int,
        product_id: int,
        stock_id: int,
        quantity_old: Decimal,
        quantity_change: Decimal,
        reserve_old: Decimal,
        on_hand_old: Decimal,
        order_id: Optional[int] = None,
        order_number: Optional[str] = None,
        ref_line: int = 1,
    ) -> int:
        """
        三组 (old, change, new)：
          - quantity / on_hand 同步变化
          - reserve 不变（change=0）
        返回新写入的 transaction.id
        """
        stmt = (
            insert(Transaction)
            .values(
                model=_v(model),
                event=_v(event),
                tenant_id=tenant_id,
                product_id=product_id,
                warehouse_id=warehouse_id,
                stock_id=stock_id,
                order_id=order_id,
                order_number=order_number,
                ref_line=int(ref_line),
                quantity_old=quantity_old,
                quantity_change=quantity_change,
                quantity_new=quantity_old + quantity_change,
                reserve_old=reserve_old,
                reserve_change=ZERO,
                reserve_new=reserve_old,
                on_hand_old=on_hand_old,
                on_hand_change=quantity_change,
                on_hand_new=on_hand_old + quantity_change,
                status=True,
            )
            .returning(Transaction.id)
        )
        return int((await session.execute(stmt)).scalar_one())

    async def write_movement(
        self,
        session: AsyncSession,
        *,
        tenant_id: int,
        store_id: Optional[int],
        stock_id: int,
        lot_id: int,
        balance_before: Decimal,
        change: Decimal,
        reserve_before: Decimal,
        cost_fifo: Decimal,
        cost_average: Decimal,
        model: str,
        reserve_change: Decimal = ZERO,
    ) -> int:
        stmt = (
            insert(StockMovement)
            .values(
                tenant_id=tenant_id,
                store_id=store_id,
                stock_id=stock_id,
                lot_id=lot_id,
                balance_before=balance_before,
                balance_after=balance_before + change,
                balance_change=change,
                reserve_before=reserve_before,
                reserve_after=reserve_before + reserve_change,
                reserve_change=reserve_change,
                cost_fifo=cost_fifo,
                cost_average=cost_average,
                action=MovementAction.ISSUE.value,
                model=model,
            )
            .returning(StockMovement.id)
        )
        return int((await session.execute(stmt)).scalar_one())
