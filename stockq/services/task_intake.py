# stockq/services/task_intake.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from stockq.core.errors import ValidationError
from stockq.models.enums import Lane

TASK_DEDUCT_STOCK = "order:deduct_stock"

# 与账本列 NUMERIC(18, 4) 一致：超出精度的数量在入口拒绝，不交给数据库舍入
QTY_MAX_DIGITS = 18
QTY_DECIMAL_PLACES = 4


class DeductionItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    product_id: int = Field(gt=0)
    quantity: Decimal = Field(gt=0, max_digits=QTY_MAX_DIGITS, decimal_places=QTY_DECIMAL_PLACES)


class DeductionTask(BaseModel):
    """
    规范化后的扣减任务（一次处理尝试内有效，可能被重投）
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    tenant_id: int = Field(gt=0)
    order_id: int = Field(gt=0)
    order_number: str = ""
    warehouse_id: int = Field(gt=0)
    items: List[DeductionItem] = Field(min_length=1)
    priority: Lane = Lane.DEFAULT

    def to_payload(self) -> Dict[str, Any]:
        """队列载荷：数量以字符串传输，避免 JSON 浮点误差"""
        return self.model_dump(mode="json")

    def items_brief(self) -> List[Dict[str, Any]]:
        return [{"product_id": it.product_id, "quantity": str(it.quantity)} for it in self.items]


def _field_path(loc: tuple) -> str:
    """('items', 1, 'quantity') -> 'items[1].quantity'"""
    out = ""
    for part in loc:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "body"


class TaskIntake:
    """
    入口校验：HTTP body（+ ?tenant=）或队列载荷 → DeductionTask

    - tenant_id / order_id / warehouse_id 必填且非 0
    - items 非空，每行 product_id 非 0、quantity > 0
    - 失败抛 ValidationError，指明第一个不合法的字段
    """

    def validate(
        self,
        raw: Optional[Mapping[str, Any]],
        *,
        tenant_id: Union[int, str, None] = None,
    ) -> DeductionTask:
        if raw is None or not isinstance(raw, Mapping):
            raise ValidationError("body", "request body must be a JSON object")

        data: Dict[str, Any] = dict(raw)
        if tenant_id is not None:
            data["tenant_id"] = tenant_id
        if data.get("order_number") is None:
            data["order_number"] = ""

        try:
            return DeductionTask.model_validate(data)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            raise ValidationError(
                _field_path(tuple(first.get("loc") or ())),
                str(first.get("msg") or "invalid"),
            ) from exc

    @staticmethod
    def lane_for(task: DeductionTask) -> Lane:
        """优先级通道：请求显式标记 critical 才走 critical，其余 default"""
        return Lane.CRITICAL if task.priority == Lane.CRITICAL else Lane.DEFAULT
