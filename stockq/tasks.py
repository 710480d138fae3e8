# stockq/tasks.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockq.core.config import get_settings
from stockq.core.errors import LedgerError, TransientDatabaseError, ValidationError
from stockq.obs.metrics import ledger_deductions_total
from stockq.observability.events import STATUS_DEAD_LETTER, LedgerEvent
from stockq.observability.reporter import ResultReporter
from stockq.services.order_deduction import OrderDeductionService
from stockq.services.task_intake import TASK_DEDUCT_STOCK, DeductionTask, TaskIntake
from stockq.worker import celery, get_runtime

log = logging.getLogger("stockq.tasks")

_settings = get_settings()
_intake = TaskIntake()


def retry_countdown(retries: int) -> float:
    """指数退避：base * 2^n，封顶 TASK_RETRY_BACKOFF_MAX"""
    return min(_settings.TASK_RETRY_BACKOFF_MAX, _settings.TASK_RETRY_BACKOFF_BASE * (2**retries))


async def run_deduct_stock(
    session_maker: async_sessionmaker[AsyncSession],
    reporter: ResultReporter,
    task: DeductionTask,
    *,
    timeout: float,
) -> Dict[str, Any]:
    """
    单次处理尝试：独占一个连接，超时则取消（事务随会话退出回滚），作为瞬时错误重投。
    """

    async def _attempt() -> Dict[str, Any]:
        async with session_maker() as session:
            result = await OrderDeductionService(reporter).run(session, task, path="queue")
        return result.to_dict()

    try:
        return await asyncio.wait_for(_attempt(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise TransientDatabaseError(
            f"deduction attempt timed out after {timeout}s",
            context={"order_id": task.order_id, "tenant_id": task.tenant_id},
        ) from exc


@celery.task(name=TASK_DEDUCT_STOCK, bind=True, max_retries=_settings.TASK_MAX_RETRIES)
def deduct_stock(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Celery 任务入口 order:deduct_stock：
      - 载荷不合法：直接失败，不重试
      - 业务失败（库存不足等）：上报 failed，直接失败，不重试
      - 瞬时错误：指数退避重投；预算耗尽上报 dead_letter，任务以 FAILURE 结束
    """
    runtime = get_runtime()

    try:
        task = _intake.validate(payload)
    except ValidationError as exc:
        ledger_deductions_total.labels("queue", "rejected").inc()
        log.error("invalid task payload id=%s: %s", self.request.id, exc.message)
        raise

    # 内层超时略短于 Celery soft limit，保证会话在取消时正常退出
    timeout = max(1.0, float(runtime.settings.TASK_SOFT_TIME_LIMIT) - 2.0)
    try:
        return runtime.run(run_deduct_stock(runtime.session_maker, runtime.reporter, task, timeout=timeout))
    except LedgerError as exc:
        if not exc.transient:
            log.warning("order %s rejected: %s", task.order_id, exc.message)
            raise
        err: LedgerError = exc
    except SoftTimeLimitExceeded as exc:
        err = TransientDatabaseError("soft time limit exceeded", context={"order_id": task.order_id})
        err.__cause__ = exc

    retries = int(self.request.retries or 0)
    if retries >= self.max_retries:
        ledger_deductions_total.labels("queue", "dead_letter").inc()
        log.error(
            "order %s dead-lettered after %d retries: %s",
            task.order_id,
            retries,
            err.message,
        )
        runtime.run(
            runtime.reporter.report(
                LedgerEvent.for_task(
                    task,
                    status=STATUS_DEAD_LETTER,
                    message="retry budget exhausted, manual inspection required",
                    error=f"{err.error_code}: {err.message}",
                )
            )
        )
        raise err

    countdown = retry_countdown(retries)
    log.warning(
        "order %s transient failure (attempt %d/%d), retry in %.1fs: %s",
        task.order_id,
        retries + 1,
        self.max_retries,
        countdown,
        err.message,
    )
    raise self.retry(exc=err, countdown=countdown)
