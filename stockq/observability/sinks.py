# stockq/observability/sinks.py
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol
from urllib.parse import urlsplit

import httpx

from stockq.core.config import AppSettings
from stockq.observability.events import LedgerEvent

log = logging.getLogger("stockq.sinks")

Sleep = Callable[[float], Awaitable[None]]

_ALIASES = {
    "order": "atlasq-hooks-write",
    "debug": "atlasq-debug-write",
    "query": "atlasq-queries-write",
}


def alias_for_type(typ: str) -> str:
    """事件类型 → OpenSearch 写入 alias（sink 与 forwarder 共用）"""
    return _ALIASES.get(typ or "", "atlasq-all-write")


@dataclass(frozen=True)
class SinkOutcome:
    sink: str
    ok: bool
    attempts: int = 1
    error: Optional[str] = None


class LogSink(Protocol):
    name: str

    async def record(self, event: LedgerEvent) -> SinkOutcome: ...


class AppLogSink:
    """始终启用：写一行应用日志"""

    name = "app_log"

    async def record(self, event: LedgerEvent) -> SinkOutcome:
        log.info(
            "[AppLogSink] %s | order_id=%s | %s | status=%s | error=%s",
            event.type,
            event.order_id,
            event.message,
            event.status,
            event.error or "",
        )
        return SinkOutcome(sink=self.name, ok=True)


class _HttpSink(ABC):
    """
    HTTP sink 公共部分：固定次数重试 + 线性退避（每个 sink 自己的策略）
    """

    name = "http"
    attempts = 3
    backoff = 1.0
    timeout = 5.0

    def __init__(
        self,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._sleep = sleep

    @abstractmethod
    def target_for(self, event: LedgerEvent) -> str:
        """事件 → 目标 URL（子类决定路由）"""

    def auth(self) -> Optional[httpx.BasicAuth]:
        return None

    async def record(self, event: LedgerEvent) -> SinkOutcome:
        target = self.target_for(event)
        body = event.to_dict()
        last_err = ""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for i in range(1, self.attempts + 1):
                try:
                    resp = await client.post(target, json=body, auth=self.auth())
                except httpx.HTTPError as exc:
                    last_err = f"{type(exc).__name__}: {exc}"
                    log.warning("[%s] attempt=%d error=%s target=%s", self.name, i, last_err, target)
                else:
                    if resp.is_success:
                        return SinkOutcome(sink=self.name, ok=True, attempts=i)
                    last_err = f"status={resp.status_code} body={resp.text[:500]}"
                    log.warning("[%s] attempt=%d %s", self.name, i, last_err)
                if i < self.attempts:
                    await self._sleep(self.backoff * i)

        log.error("[%s] final error: %s", self.name, last_err)
        return SinkOutcome(sink=self.name, ok=False, attempts=self.attempts, error=last_err)


class WebhookSink(_HttpSink):
    """
    Dashboard webhook：

    - URL 只有 host（无 path）时按事件类型路由到 {base}/{alias}/_doc
    - 配了 pipeline 时追加 ?pipeline=
    - 3 次尝试，退避 200ms * i
    """

    name = "webhook"
    backoff = 0.2

    def __init__(self, url: str, *, pipeline: str = "", **kw) -> None:
        super().__init__(**kw)
        self.url = url
        self.pipeline = pipeline

    def target_for(self, event: LedgerEvent) -> str:
        target = self.url
        parts = urlsplit(self.url)
        if parts.scheme and parts.path.rstrip("/") == "":
            target = f"{parts.scheme}://{parts.netloc}/{alias_for_type(event.type)}/_doc"
        if self.pipeline:
            sep = "&" if "?" in target else "?"
            target = f"{target}{sep}{httpx.QueryParams({'pipeline': self.pipeline})}"
        return target


class SearchIndexSink(_HttpSink):
    """
    直接写 OpenSearch 索引：{OPENSEARCH_URL}/{index}/_doc，可带 basic auth。
    3 次尝试，退避 1s * i。
    """

    name = "search_index"
    backoff = 1.0

    def __init__(self, base_url: str, *, index: str, user: str = "", password: str = "", **kw) -> None:
        super().__init__(**kw)
        self.base_url = base_url.rstrip("/")
        self.index = index
        self.user = user
        self.password = password

    def target_for(self, event: LedgerEvent) -> str:
        return f"{self.base_url}/{self.index}/_doc"

    def auth(self) -> Optional[httpx.BasicAuth]:
        if not self.user:
            return None
        return httpx.BasicAuth(self.user, self.password)


def build_sinks(settings: AppSettings) -> List[LogSink]:
    sinks: List[LogSink] = []
    if settings.OPENSEARCH_URL:
        sinks.append(
            SearchIndexSink(
                settings.OPENSEARCH_URL,
                index=settings.OPENSEARCH_LOG_INDEX,
                user=settings.OPENSEARCH_USER,
                password=settings.OPENSEARCH_PASS,
            )
        )
    if settings.DASHBOARD_WEBHOOK_URL:
        sinks.append(
            WebhookSink(settings.DASHBOARD_WEBHOOK_URL, pipeline=settings.OPENSEARCH_PIPELINE)
        )
    sinks.append(AppLogSink())
    return sinks
