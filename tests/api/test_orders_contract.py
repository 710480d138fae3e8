# tests/api/test_orders_contract.py
from __future__ import annotations

from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.fakes import RecordingSink
from tests.helpers.inventory import count_transactions, seed_stock, stock_row

from stockq.models.order import Order

pytestmark = pytest.mark.contract


def _order(items, *, order_id: int = 7001):
    return {
        "order_id": order_id,
        "order_number": f"SO-{order_id}",
        "warehouse_id": 1,
        "items": [{"product_id": p, "quantity": q} for p, q in items],
    }


@pytest.mark.asyncio
async def test_sync_deduct_applies_and_reports_success(
    client: httpx.AsyncClient, session: AsyncSession, recording_sink: RecordingSink
):
    await seed_stock(session, tenant=1, wh=1, product=100, qty=20)

    resp = await client.post("/orders", params={"tenant": 1}, json=_order([(100, "5")]))

    assert resp.status_code == 201, resp.text
    results = resp.json()["results"]
    assert results["applied"] == 1 and results["skipped"] == 0
    assert Decimal(results["items"][0]["quantity_new"]) == Decimal("15")

    assert (await stock_row(session, product=100)).quantity == Decimal("15")
    assert recording_sink.statuses() == ["success"]


@pytest.mark.asyncio
async def test_sync_deduct_resubmitted_is_skipped(client: httpx.AsyncClient, session: AsyncSession):
    await seed_stock(session, product=100, qty=20)
    body = _order([(100, "5")])

    first = await client.post("/orders", params={"tenant": 1}, json=body)
    second = await client.post("/orders", params={"tenant": 1}, json=body)

    assert first.status_code == 201 and second.status_code == 201
    assert second.json()["results"]["skipped"] == 1
    assert (await stock_row(session, product=100)).quantity == Decimal("15")
    assert await count_transactions(session) == 1


@pytest.mark.asyncio
async def test_sync_deduct_insufficient_is_409_problem(
    client: httpx.AsyncClient, session: AsyncSession, recording_sink: RecordingSink
):
    await seed_stock(session, product=100, qty=20)
    await seed_stock(session, product=101, qty=1)

    resp = await client.post("/orders", params={"tenant": 1}, json=_order([(100, "5"), (101, "3")]))

    assert resp.status_code == 409
    data = resp.json()
    assert data["error_code"] == "insufficient_stock"
    assert data["http_status"] == 409
    assert data["context"]["path"] == "/orders"
    assert data["context"]["product_id"] == 101
    assert data["details"][0]["type"] == "shortage"
    assert data["details"][0]["path"] == "items[1]"

    assert (await stock_row(session, product=100)).quantity == Decimal("20")
    assert await count_transactions(session) == 0
    assert recording_sink.statuses() == ["failed"]
    assert "insufficient_stock" in (recording_sink.events[0].error or "")


@pytest.mark.asyncio
async def test_sync_deduct_invalid_body_is_422(client: httpx.AsyncClient, recording_sink: RecordingSink):
    resp = await client.post("/orders", params={"tenant": 1}, json=_order([(100, "-1")]))

    assert resp.status_code == 422
    assert resp.json()["details"][0]["path"] == "items[0].quantity"
    assert recording_sink.events == []


@pytest.mark.asyncio
async def test_get_order_by_pk(client: httpx.AsyncClient, session: AsyncSession):
    order = Order(tenant_id=1, warehouse_id=2, order_number="SO-1", stock_method="FIFO")
    session.add(order)
    await session.flush()
    pk = int(order.id)
    await session.commit()

    resp = await client.get(f"/orders/{pk}")

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["id"] == pk
    assert data["order_number"] == "SO-1"
    assert data["issued"] is False


@pytest.mark.asyncio
async def test_get_missing_order_is_404_problem(client: httpx.AsyncClient):
    resp = await client.get("/orders/999")

    assert resp.status_code == 404
    data = resp.json()
    assert data["error_code"] == "order_not_found"
    assert data["context"]["order_pk"] == 999


@pytest.mark.asyncio
async def test_sync_deduct_rejects_quantity_finer_than_ledger(client: httpx.AsyncClient, session: AsyncSession):
    await seed_stock(session, product=100, qty=20)

    for order_id in (7101, 7102):
        resp = await client.post("/orders", params={"tenant": 1}, json=_order([(100, "1.00005")], order_id=order_id))
        assert resp.status_code == 422
        assert resp.json()["details"][0]["path"] == "items[0].quantity"

    assert (await stock_row(session, product=100)).quantity == Decimal("20")
    assert await count_transactions(session) == 0
