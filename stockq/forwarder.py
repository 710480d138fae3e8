# stockq/forwarder.py
"""
日志转发服务：接收 webhook，按事件 type 选 OpenSearch alias 转发。

    POST /webhook  body: {"type": "order" | "debug" | "query" | ..., ...}
      → {OPENSEARCH_URL}/{alias}/_doc?pipeline={FORWARDER_PIPELINE}
      成功 202；上游失败 502；空 body 400
"""
from __future__ import annotations

import json
import logging
from typing import Optional

import httpx
from fastapi import FastAPI, Request, Response

from stockq.core.config import AppSettings, get_settings
from stockq.core.logging import setup_logging
from stockq.observability.sinks import alias_for_type

log = logging.getLogger("stockq.forwarder")

DEFAULT_OPENSEARCH_URL = "http://localhost:9200"


def _event_type(body: bytes) -> str:
    # 非 JSON 对象也照样转发，落到默认 alias
    try:
        data = json.loads(body)
    except ValueError:
        return "order"
    if isinstance(data, dict):
        typ = data.get("type")
        if isinstance(typ, str) and typ:
            return typ
    return "order"


def create_forwarder(
    settings: Optional[AppSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or get_settings()
    base_url = (settings.OPENSEARCH_URL or DEFAULT_OPENSEARCH_URL).rstrip("/")
    pipeline = settings.FORWARDER_PIPELINE
    auth = httpx.BasicAuth(settings.OPENSEARCH_USER, settings.OPENSEARCH_PASS) if settings.OPENSEARCH_USER else None

    app = FastAPI(title="stockq-forwarder", docs_url=None, redoc_url=None)

    @app.get("/healthz")
    async def healthz() -> Response:
        return Response(content="ok", media_type="text/plain")

    @app.post("/webhook")
    async def webhook(request: Request) -> Response:
        body = await request.body()
        if not body:
            return Response(content="bad request", status_code=400, media_type="text/plain")

        alias = alias_for_type(_event_type(body))
        url = f"{base_url}/{alias}/_doc"
        params = {"pipeline": pipeline} if pipeline else None

        try:
            async with httpx.AsyncClient(timeout=10, transport=transport) as client:
                resp = await client.post(
                    url,
                    content=body,
                    params=params,
                    auth=auth,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as exc:
            log.warning("forward error: %s", exc)
            return Response(content="bad gateway", status_code=502, media_type="text/plain")

        if resp.is_success:
            log.info("forwarded to %s, status=%d", alias, resp.status_code)
            return Response(content="accepted", status_code=202, media_type="text/plain")

        log.warning("opensearch returned status=%d body=%s", resp.status_code, resp.text[:500])
        return Response(content="forward failed", status_code=502, media_type="text/plain")

    return app


def run() -> None:
    """命令行入口：stockq-forwarder"""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    host, _, port = settings.FORWARDER_ADDR.rpartition(":")
    log.info(
        "forwarder starting on %s -> %s (pipeline=%s)",
        settings.FORWARDER_ADDR,
        settings.OPENSEARCH_URL or DEFAULT_OPENSEARCH_URL,
        settings.FORWARDER_PIPELINE,
    )
    uvicorn.run(create_forwarder(settings), host=host or "0.0.0.0", port=int(port or 8081))


if __name__ == "__main__":
    run()
