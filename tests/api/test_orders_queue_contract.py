# tests/api/test_orders_queue_contract.py
from __future__ import annotations

import httpx
import pytest

from tests.helpers.fakes import FakeEnqueuer

pytestmark = pytest.mark.contract


def _order(**kw):
    body = {
        "order_id": 5001,
        "order_number": "SO-5001",
        "warehouse_id": 1,
        "items": [{"product_id": 100, "quantity": "2"}],
    }
    body.update(kw)
    return body


@pytest.mark.asyncio
async def test_enqueue_returns_task_id_and_default_lane(client: httpx.AsyncClient, fake_enqueuer: FakeEnqueuer):
    resp = await client.post("/orders-queue", params={"tenant": 3}, json=_order())

    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["task_id"] == "task-1"
    assert data["queue"] == "default"

    (task,) = fake_enqueuer.sent
    assert task.tenant_id == 3
    assert task.order_id == 5001
    assert str(task.items[0].quantity) == "2"


@pytest.mark.asyncio
async def test_critical_priority_goes_to_critical_lane(client: httpx.AsyncClient, fake_enqueuer: FakeEnqueuer):
    resp = await client.post("/orders-queue", params={"tenant": 3}, json=_order(priority="critical"))

    assert resp.status_code == 201, resp.text
    assert resp.json()["queue"] == "critical"


@pytest.mark.asyncio
async def test_empty_items_rejected_before_enqueue(client: httpx.AsyncClient, fake_enqueuer: FakeEnqueuer):
    resp = await client.post("/orders-queue", params={"tenant": 3}, json=_order(items=[]))

    assert resp.status_code == 422
    data = resp.json()
    assert data["error_code"] == "validation_error"
    assert data["details"][0]["path"] == "items"
    assert data["trace_id"]
    assert fake_enqueuer.sent == []


@pytest.mark.asyncio
async def test_missing_tenant_rejected(client: httpx.AsyncClient, fake_enqueuer: FakeEnqueuer):
    resp = await client.post("/orders-queue", json=_order())

    assert resp.status_code == 422
    assert resp.json()["details"][0]["path"] == "tenant_id"
    assert fake_enqueuer.sent == []


@pytest.mark.asyncio
async def test_missing_body_rejected(client: httpx.AsyncClient, fake_enqueuer: FakeEnqueuer):
    resp = await client.post("/orders-queue", params={"tenant": 3})

    assert resp.status_code == 422
    assert resp.json()["details"][0]["path"] == "body"
    assert fake_enqueuer.sent == []
