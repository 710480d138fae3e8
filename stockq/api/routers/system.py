# stockq/api/routers/system.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict

from stockq.api.deps import get_reporter, get_settings_dep
from stockq.core.config import AppSettings
from stockq.observability.reporter import ResultReporter

router = APIRouter(tags=["system"])


class DebugLogIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dev_name: str = "internal"
    message: str = "log pipeline test"
    tenant_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    order_id: Optional[int] = None
    status: str = ""


@router.get("/")
async def banner() -> Response:
    return Response(content="stockq", media_type="text/plain")


@router.get("/healthz")
async def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.post("/internal/logs/test")
async def send_test_log(
    body: Optional[DebugLogIn] = Body(None),
    reporter: ResultReporter = Depends(get_reporter),
    settings: AppSettings = Depends(get_settings_dep),
) -> Dict[str, Any]:
    """向所有 sink 发一条 debug 事件，并返回当前 sink 配置，便于排查日志链路"""
    body = body or DebugLogIn()
    outcomes = await reporter.debug(
        body.dev_name,
        body.message,
        status=body.status,
        tenant_id=body.tenant_id,
        warehouse_id=body.warehouse_id,
        order_id=body.order_id,
    )
    return {
        "status": "sent",
        "info": {
            "opensearch_url": settings.OPENSEARCH_URL,
            "opensearch_index": settings.OPENSEARCH_LOG_INDEX,
            "dashboard_webhook": settings.DASHBOARD_WEBHOOK_URL,
            "sinks": reporter.describe(),
        },
        "outcomes": [{"sink": o.sink, "ok": o.ok, "attempts": o.attempts, "error": o.error} for o in outcomes],
    }
