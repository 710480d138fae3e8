# stockq/observability/events.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from stockq.services.task_intake import DeductionTask

UTC = timezone.utc

# 事件类型（决定 OpenSearch alias）
TYPE_ORDER = "order"
TYPE_DEBUG = "debug"
TYPE_QUERY = "query"

# 事件状态
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_DEAD_LETTER = "dead_letter"


@dataclass
class LedgerEvent:
    """
    一次处理结果的结构化事件（由生产方显式填充，不从任意载荷里反射抓取）。
    """

    type: str
    message: str
    status: str = ""
    tenant_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    order_id: Optional[int] = None
    order_number: Optional[str] = None
    items: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    level: str = "INFO"
    dev_name: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def for_task(
        cls,
        task: DeductionTask,
        *,
        status: str,
        message: str,
        error: Optional[str] = None,
    ) -> "LedgerEvent":
        return cls(
            type=TYPE_ORDER,
            status=status,
            message=message,
            tenant_id=task.tenant_id,
            warehouse_id=task.warehouse_id,
            order_id=task.order_id,
            order_number=task.order_number or None,
            items=task.items_brief(),
            error=error,
            level="INFO" if status == STATUS_SUCCESS else "ERROR",
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.type,
            "message": self.message,
            "status": self.status,
            "tenant_id": self.tenant_id,
            "warehouse_id": self.warehouse_id,
            "order_id": self.order_id,
            "items": self.items,
            "level": self.level,
            "timestamp": self.timestamp.isoformat(),
        }
        # 可选字段：空值不上报
        if self.order_number:
            out["order_number"] = self.order_number
        if self.error:
            out["error"] = self.error
        if self.dev_name:
            out["dev_name"] = self.dev_name
        return out
