from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from stockq.core.config import AppSettings
from stockq.forwarder import create_forwarder


def _settings(**kw) -> AppSettings:
    base = dict(
        OPENSEARCH_URL="http://os:9200",
        OPENSEARCH_USER="",
        OPENSEARCH_PASS="",
        FORWARDER_PIPELINE="atlasq-normalize",
    )
    base.update(kw)
    return AppSettings(**base)


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://forwarder")


@pytest.mark.asyncio
async def test_forwards_to_alias_for_event_type():
    seen: List[httpx.Request] = []

    def upstream(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201)

    app = create_forwarder(_settings(), transport=httpx.MockTransport(upstream))
    body = json.dumps({"type": "query", "message": "lookup"}).encode()

    async with _client(app) as ac:
        resp = await ac.post("/webhook", content=body)

    assert resp.status_code == 202
    (req,) = seen
    assert req.url.path == "/atlasq-queries-write/_doc"
    assert req.url.params["pipeline"] == "atlasq-normalize"
    assert req.content == body


@pytest.mark.asyncio
async def test_non_json_body_goes_to_order_alias():
    seen: List[httpx.Request] = []

    def upstream(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    app = create_forwarder(_settings(OPENSEARCH_USER="ops", OPENSEARCH_PASS="pw"), transport=httpx.MockTransport(upstream))

    async with _client(app) as ac:
        resp = await ac.post("/webhook", content=b"plain text line")

    assert resp.status_code == 202
    assert seen[0].url.path == "/atlasq-hooks-write/_doc"
    assert seen[0].headers["authorization"].startswith("Basic ")


@pytest.mark.asyncio
async def test_empty_body_is_bad_request():
    app = create_forwarder(_settings(), transport=httpx.MockTransport(lambda r: httpx.Response(200)))

    async with _client(app) as ac:
        resp = await ac.post("/webhook", content=b"")

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_upstream_failure_is_bad_gateway():
    app = create_forwarder(_settings(), transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom")))

    async with _client(app) as ac:
        resp = await ac.post("/webhook", content=b'{"type":"order"}')
        health = await ac.get("/healthz")

    assert resp.status_code == 502
    assert health.status_code == 200 and health.text == "ok"
