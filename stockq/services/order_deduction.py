# stockq/services/order_deduction.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stockq.core.errors import LedgerError
from stockq.obs.metrics import ledger_deductions_total
from stockq.observability.events import STATUS_FAILED, STATUS_SUCCESS, LedgerEvent
from stockq.observability.reporter import ResultReporter
from stockq.services.ledger_engine import DeductionResult, StockLedgerEngine
from stockq.services.task_intake import DeductionTask

log = logging.getLogger("stockq.order_deduction")


class OrderDeductionService:
    """
    订单扣减编排：账本引擎 + 结果上报 + 计数。

    - 成功：上报 success 事件
    - 永久失败（库存不足等）：上报 failed 事件后原样抛出
    - 瞬时失败：report_transient=True 时同样上报（同步 HTTP 路径）；
      队列路径交给 worker 重投，预算耗尽后由 worker 上报 dead_letter
    """

    def __init__(
        self,
        reporter: ResultReporter,
        engine: Optional[StockLedgerEngine] = None,
    ) -> None:
        self.reporter = reporter
        self.engine = engine or StockLedgerEngine()

    async def run(
        self,
        session: AsyncSession,
        task: DeductionTask,
        *,
        path: str,
        report_transient: bool = False,
    ) -> DeductionResult:
        try:
            result = await self.engine.deduct(session, task)
        except LedgerError as exc:
            ledger_deductions_total.labels(path, "retry" if exc.transient else "rejected").inc()
            if report_transient or not exc.transient:
                await self.reporter.report(
                    LedgerEvent.for_task(
                        task,
                        status=STATUS_FAILED,
                        message="stock deduction failed",
                        error=f"{exc.error_code}: {exc.message}",
                    )
                )
            raise

        ledger_deductions_total.labels(path, "ok").inc()
        await self.reporter.report(
            LedgerEvent.for_task(
                task,
                status=STATUS_SUCCESS,
                message=f"stock deducted: applied={result.applied_count} skipped={result.skipped_count}",
            )
        )
        return result
