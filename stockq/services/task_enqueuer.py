# stockq/services/task_enqueuer.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from celery import Celery
from starlette.concurrency import run_in_threadpool

from stockq.services.task_intake import TASK_DEDUCT_STOCK, DeductionTask, TaskIntake

log = logging.getLogger("stockq.enqueue")


@dataclass(frozen=True)
class EnqueueReceipt:
    task_id: str
    queue: str


class TaskEnqueuer:
    """把已校验的扣减任务投递到对应优先级队列（broker 调用放到线程池，不阻塞事件循环）"""

    def __init__(self, celery_app: Celery) -> None:
        self.celery_app = celery_app

    def _send(self, task: DeductionTask) -> EnqueueReceipt:
        queue = TaskIntake.lane_for(task).value
        res = self.celery_app.send_task(
            TASK_DEDUCT_STOCK,
            kwargs={"payload": task.to_payload()},
            queue=queue,
        )
        log.info(
            "task enqueued: id=%s queue=%s tenant=%s order=%s",
            res.id,
            queue,
            task.tenant_id,
            task.order_id,
        )
        return EnqueueReceipt(task_id=str(res.id), queue=queue)

    async def enqueue(self, task: DeductionTask) -> EnqueueReceipt:
        return await run_in_threadpool(self._send, task)
