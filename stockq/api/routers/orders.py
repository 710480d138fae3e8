# stockq/api/routers/orders.py
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockq.api.deps import get_reporter, get_session
from stockq.core.errors import OrderNotFound, ValidationError
from stockq.models.order import Order
from stockq.obs.metrics import ledger_deductions_total
from stockq.observability.reporter import ResultReporter
from stockq.schemas.orders import OrderDeductOut, OrderOut
from stockq.services.order_deduction import OrderDeductionService
from stockq.services.task_intake import TaskIntake

router = APIRouter(tags=["orders"])

_intake = TaskIntake()


@router.post("/orders", response_model=OrderDeductOut, status_code=status.HTTP_201_CREATED)
async def deduct_order(
    tenant: Optional[int] = Query(None, description="租户 ID，覆盖 body 内的 tenant_id"),
    body: Any = Body(None),
    session: AsyncSession = Depends(get_session),
    reporter: ResultReporter = Depends(get_reporter),
) -> OrderDeductOut:
    """同步扣减：与 worker 共用同一个账本引擎，失败直接映射为 Problem 响应"""
    try:
        task = _intake.validate(body, tenant_id=tenant)
    except ValidationError:
        ledger_deductions_total.labels("sync", "rejected").inc()
        raise

    result = await OrderDeductionService(reporter).run(
        session, task, path="sync", report_transient=True
    )
    return OrderDeductOut(message="stock deducted", results=result.to_dict())


@router.get("/orders/{order_pk}", response_model=OrderOut)
async def get_order(
    order_pk: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> OrderOut:
    order = await session.get(Order, order_pk)
    if order is None:
        raise OrderNotFound(f"order {order_pk} not found", context={"order_pk": order_pk})
    return OrderOut.model_validate(order)
