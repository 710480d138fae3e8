# stockq/api/routers/orders_queue.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from stockq.api.deps import get_enqueuer
from stockq.core.errors import ValidationError
from stockq.obs.metrics import ledger_deductions_total
from stockq.schemas.orders import OrderQueuedOut
from stockq.services.task_enqueuer import TaskEnqueuer
from stockq.services.task_intake import TaskIntake

router = APIRouter(tags=["orders"])

_intake = TaskIntake()


@router.post("/orders-queue", response_model=OrderQueuedOut, status_code=status.HTTP_201_CREATED)
async def enqueue_order(
    tenant: Optional[int] = Query(None, description="租户 ID，覆盖 body 内的 tenant_id"),
    body: Any = Body(None),
    enqueuer: TaskEnqueuer = Depends(get_enqueuer),
) -> OrderQueuedOut:
    """
    校验后投递到 critical / default 队列；不合法的载荷直接 422，不进队列。
    """
    try:
        task = _intake.validate(body, tenant_id=tenant)
    except ValidationError:
        ledger_deductions_total.labels("queue", "rejected").inc()
        raise

    receipt = await enqueuer.enqueue(task)
    ledger_deductions_total.labels("queue", "queued").inc()
    return OrderQueuedOut(task_id=receipt.task_id, queue=receipt.queue, message="order queued")
