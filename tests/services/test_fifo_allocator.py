# tests/services/test_fifo_allocator.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import lot_balances, movements_of, seed_lots, seed_stock

from stockq.core.errors import InsufficientLotQuantity
from stockq.core.tx import serializable_tx
from stockq.services.fifo_allocator import FifoAllocator, plan_fifo
from stockq.services.lot_store import LotRow, LotStore

UTC = timezone.utc
pytestmark = pytest.mark.contract


def _lot(i: int, balance: str) -> LotRow:
    return LotRow(
        id=i,
        balance=Decimal(balance),
        cost_fifo=Decimal("1"),
        cost_average=Decimal("1"),
        created_date=datetime(2024, 1, i, tzinfo=UTC),
    )


def test_plan_fifo_takes_oldest_first_and_stops_early():
    plan, remaining = plan_fifo([_lot(1, "5"), _lot(2, "10"), _lot(3, "4")], Decimal("7"))

    assert remaining == Decimal("0")
    assert [(s.lot.id, s.take) for s in plan] == [(1, Decimal("5")), (2, Decimal("2"))]


def test_plan_fifo_reports_shortfall():
    plan, remaining = plan_fifo([_lot(1, "1.5"), _lot(2, "2")], Decimal("5"))

    assert [s.take for s in plan] == [Decimal("1.5"), Decimal("2")]
    assert remaining == Decimal("1.5")


@pytest.mark.asyncio
async def test_fifo_issue_7_from_lots_5_and_10(session: AsyncSession):
    stock_id = await seed_stock(session, product=100, qty=15)
    lot_ids = await seed_lots(session, stock_id=stock_id, lots=[(5, 0), (10, 1)])

    store = LotStore()
    async with serializable_tx(session, op="test_fifo"):
        stock = await store.find_stock(session, tenant_id=1, warehouse_id=1, product_id=100)
        legs = await FifoAllocator(store=store).allocate(
            session, stock=stock, qty=Decimal("7"), tenant_id=1, store_id=None, model="STOCK"
        )

    assert [leg.lot_id for leg in legs] == lot_ids
    assert [leg.change for leg in legs] == [Decimal("-5"), Decimal("-2")]
    assert await lot_balances(session, stock_id=stock_id) == [Decimal("0"), Decimal("8")]

    moves = await movements_of(session, stock_id=stock_id)
    assert [m.lot_id for m in moves] == lot_ids
    assert [m.balance_change for m in moves] == [Decimal("-5"), Decimal("-2")]
    # stock 层面的滚动余额：15 → 10 → 8
    assert [(m.balance_before, m.balance_after) for m in moves] == [
        (Decimal("15"), Decimal("10")),
        (Decimal("10"), Decimal("8")),
    ]
    assert all(m.action == "issue" and m.model == "STOCK" for m in moves)
    assert all(m.reserve_change == Decimal("0") for m in moves)


@pytest.mark.asyncio
async def test_fifo_skips_empty_lots(session: AsyncSession):
    stock_id = await seed_stock(session, product=100, qty=6)
    await seed_lots(session, stock_id=stock_id, lots=[(0, 0), (6, 1)])

    store = LotStore()
    async with serializable_tx(session, op="test_fifo"):
        stock = await store.find_stock(session, tenant_id=1, warehouse_id=1, product_id=100)
        legs = await FifoAllocator(store=store).allocate(
            session, stock=stock, qty=Decimal("6"), tenant_id=1, store_id=7, model="STOCK"
        )

    assert len(legs) == 1
    assert await lot_balances(session, stock_id=stock_id) == [Decimal("0"), Decimal("0")]


@pytest.mark.asyncio
async def test_fifo_insufficient_lot_quantity_changes_nothing(session: AsyncSession):
    stock_id = await seed_stock(session, product=100, qty=20)
    await seed_lots(session, stock_id=stock_id, lots=[(3, 0), (4, 1)])

    store = LotStore()
    with pytest.raises(InsufficientLotQuantity) as ei:
        async with serializable_tx(session, op="test_fifo"):
            stock = await store.find_stock(session, tenant_id=1, warehouse_id=1, product_id=100)
            await FifoAllocator(store=store).allocate(
                session, stock=stock, qty=Decimal("10"), tenant_id=1, store_id=None, model="STOCK"
            )

    assert ei.value.http_status == 409
    assert Decimal(ei.value.details[0]["short_qty"]) == Decimal("3")
    assert await lot_balances(session, stock_id=stock_id) == [Decimal("3"), Decimal("4")]
    assert await movements_of(session, stock_id=stock_id) == []
