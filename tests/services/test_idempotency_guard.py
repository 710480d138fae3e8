# tests/services/test_idempotency_guard.py
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import seed_stock

from stockq.core.tx import serializable_tx
from stockq.models.enums import TxnEvent, TxnModel
from stockq.services.audit_writer import AuditWriter
from stockq.services.idempotency_guard import IdempotencyGuard


async def _write_order_issue(session: AsyncSession, *, stock_id: int, order_id: int, ref_line: int, qty: str):
    async with serializable_tx(session, op="test_audit"):
        await AuditWriter().write_transaction(
            session,
            model=TxnModel.ORDER,
            event=TxnEvent.ISSUE,
            tenant_id=1,
            warehouse_id=1,
            product_id=100,
            stock_id=stock_id,
            quantity_old=Decimal("20"),
            quantity_change=-Decimal(qty),
            reserve_old=Decimal("0"),
            on_hand_old=Decimal("20"),
            order_id=order_id,
            ref_line=ref_line,
        )


async def _applied(session: AsyncSession, guard: IdempotencyGuard, **kw) -> bool:
    params = dict(tenant_id=1, warehouse_id=1, product_id=100, requested=Decimal("5"), order_id=42, ref_line=1)
    params.update(kw)
    async with serializable_tx(session, op="test_guard"):
        return await guard.already_applied(session, **params)


@pytest.mark.asyncio
async def test_guard_matches_full_business_key(session: AsyncSession):
    stock_id = await seed_stock(session, product=100, qty=20)
    guard = IdempotencyGuard()

    assert await _applied(session, guard) is False

    await _write_order_issue(session, stock_id=stock_id, order_id=42, ref_line=1, qty="5")

    assert await _applied(session, guard) is True
    # 任一键不同都不算已落账
    assert await _applied(session, guard, order_id=43) is False
    assert await _applied(session, guard, ref_line=2) is False
    assert await _applied(session, guard, requested=Decimal("6")) is False
    assert await _applied(session, guard, tenant_id=2) is False
    assert await _applied(session, guard, warehouse_id=2) is False


@pytest.mark.asyncio
async def test_guard_ignores_other_models(session: AsyncSession):
    stock_id = await seed_stock(session, product=100, qty=20)
    await _write_order_issue(session, stock_id=stock_id, order_id=42, ref_line=1, qty="5")

    stock_guard = IdempotencyGuard(model=TxnModel.STOCK, event=TxnEvent.ISSUE)
    assert await _applied(session, stock_guard) is False
