# tests/services/test_ledger_concurrency_pg.py
"""
并发扣减同一 stock：Serializable 冲突被归类为瞬时错误，调用方整单重来；
最终余额必须等于初始值减去所有成功扣减之和（无丢失更新）。
"""
from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from tests.helpers.inventory import count_transactions, seed_stock, stock_row

from stockq.core.errors import TransientDatabaseError
from stockq.services.ledger_engine import StockLedgerEngine
from stockq.services.task_intake import TaskIntake

pytestmark = [pytest.mark.contract, pytest.mark.pg_only]

WORKERS = 8


async def _deduct_with_retry(maker, task, *, attempts: int = 50) -> int:
    engine = StockLedgerEngine()
    conflicts = 0
    for _ in range(attempts):
        async with maker() as session:
            try:
                await engine.deduct(session, task)
                return conflicts
            except TransientDatabaseError:
                conflicts += 1
                await asyncio.sleep(0.01)
    raise AssertionError(f"order {task.order_id} never committed")


@pytest.mark.asyncio
async def test_concurrent_deductions_lose_no_updates(async_session_maker):
    async with async_session_maker() as s:
        await seed_stock(s, product=100, qty=100)

    intake = TaskIntake()
    tasks = [
        intake.validate(
            {
                "tenant_id": 1,
                "order_id": 1000 + i,
                "warehouse_id": 1,
                "items": [{"product_id": 100, "quantity": "3"}],
            }
        )
        for i in range(WORKERS)
    ]

    await asyncio.gather(*(_deduct_with_retry(async_session_maker, t) for t in tasks))

    async with async_session_maker() as s:
        assert (await stock_row(s, product=100)).quantity == Decimal("100") - 3 * WORKERS
        assert await count_transactions(s) == WORKERS


@pytest.mark.asyncio
async def test_concurrent_redelivery_applies_once(async_session_maker):
    async with async_session_maker() as s:
        await seed_stock(s, product=100, qty=10)

    task = TaskIntake().validate(
        {
            "tenant_id": 1,
            "order_id": 4242,
            "warehouse_id": 1,
            "items": [{"product_id": 100, "quantity": "4"}],
        }
    )

    await asyncio.gather(*(_deduct_with_retry(async_session_maker, task) for _ in range(4)))

    async with async_session_maker() as s:
        assert (await stock_row(s, product=100)).quantity == Decimal("6")
        assert await count_transactions(s) == 1
