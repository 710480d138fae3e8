# stockq/models/enums.py
from __future__ import annotations

try:
    from enum import StrEnum  # Python 3.11+
except ImportError:  # 兼容更低版本
    from enum import Enum as StrEnum  # type: ignore


class TxnModel(StrEnum):
    """
    transaction.model：变动来源

    - ORDER  订单扣减（队列 / 同步下单）
    - STOCK  直接出库（/stock-issue，FIFO 批次）
    """

    ORDER = "ORDER"
    STOCK = "STOCK"


class TxnEvent(StrEnum):
    """transaction.event：变动动作"""

    ISSUE = "ISSUE"


class MovementAction(StrEnum):
    """stock_movement.action"""

    ISSUE = "issue"


class Lane(StrEnum):
    """队列优先级通道（按列表顺序消费：critical 优先）"""

    CRITICAL = "critical"
    DEFAULT = "default"
