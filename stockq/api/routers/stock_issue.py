# stockq/api/routers/stock_issue.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stockq.api.deps import get_session
from stockq.core.errors import LedgerError
from stockq.obs.metrics import ledger_deductions_total
from stockq.schemas.stock_issue import StockIssueIn, StockIssueOut
from stockq.services.stock_issue_service import StockIssueCommand, StockIssueService

router = APIRouter(tags=["stock"])

_service = StockIssueService()


@router.post("/stock-issue", response_model=StockIssueOut)
async def issue_stock(
    payload: StockIssueIn,
    session: AsyncSession = Depends(get_session),
) -> StockIssueOut:
    """
    直接出库：stock 扣减 + FIFO 批次分配，返回扣减后余额与逐批 movement。
    """
    cmd = StockIssueCommand(
        tenant_id=payload.tenant_id,
        store_id=payload.store_id,
        warehouse_id=payload.warehouse_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        model=payload.model,
    )
    try:
        result = await _service.issue(session, cmd)
    except LedgerError as exc:
        ledger_deductions_total.labels("fifo", "retry" if exc.transient else "rejected").inc()
        raise

    ledger_deductions_total.labels("fifo", "ok").inc()
    return StockIssueOut.model_validate({"message": "stock issued", **result.to_dict()})
