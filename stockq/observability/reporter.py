# stockq/observability/reporter.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from stockq.obs.metrics import sink_failures_total
from stockq.observability.events import TYPE_DEBUG, LedgerEvent
from stockq.observability.sinks import LogSink, SinkOutcome

log = logging.getLogger("stockq.reporter")


class ResultReporter:
    """
    把一次处理结果扇出到所有 sink。

    sink 的失败（返回 ok=False 或抛异常）只记日志和计数，不影响账本结果。
    """

    def __init__(self, sinks: Sequence[LogSink]) -> None:
        self.sinks: List[LogSink] = list(sinks)

    async def report(self, event: LedgerEvent) -> List[SinkOutcome]:
        outcomes: List[SinkOutcome] = []
        for sink in self.sinks:
            name = getattr(sink, "name", type(sink).__name__)
            try:
                outcome = await sink.record(event)
            except Exception as exc:
                log.exception("sink %s raised while recording %s event", name, event.type)
                outcome = SinkOutcome(sink=name, ok=False, error=f"{type(exc).__name__}: {exc}")
            if not outcome.ok:
                sink_failures_total.labels(name).inc()
            outcomes.append(outcome)
        return outcomes

    async def debug(
        self,
        dev_name: str,
        message: str,
        *,
        status: str = "",
        tenant_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        order_id: Optional[int] = None,
        order_number: Optional[str] = None,
        items: Optional[List[Dict[str, Any]]] = None,
        error: Optional[str] = None,
    ) -> List[SinkOutcome]:
        """开发调试事件：字段由调用方显式传入"""
        event = LedgerEvent(
            type=TYPE_DEBUG,
            level="DEBUG",
            dev_name=dev_name,
            message=message,
            status=status,
            tenant_id=tenant_id,
            warehouse_id=warehouse_id,
            order_id=order_id,
            order_number=order_number,
            items=list(items or []),
            error=error,
        )
        return await self.report(event)

    def describe(self) -> Dict[str, str]:
        return {getattr(s, "name", type(s).__name__): type(s).__name__ for s in self.sinks}
