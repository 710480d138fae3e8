# stockq/schemas/stock_issue.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from stockq.models.enums import TxnModel
from stockq.services.task_intake import QTY_DECIMAL_PLACES, QTY_MAX_DIGITS


class StockIssueIn(BaseModel):
    """直接出库请求；tenant_id 兼容旧字段名 app_id"""

    model_config = ConfigDict(extra="ignore")

    tenant_id: int = Field(gt=0, validation_alias=AliasChoices("tenant_id", "app_id"))
    store_id: Optional[int] = None
    warehouse_id: int = Field(gt=0)
    product_id: int = Field(gt=0)
    quantity: Decimal = Field(gt=0, max_digits=QTY_MAX_DIGITS, decimal_places=QTY_DECIMAL_PLACES)
    model: str = Field(default=TxnModel.STOCK.value, min_length=1, max_length=32)


class MovementOut(BaseModel):
    lot_id: int
    movement_id: int
    lot_balance_before: str
    lot_balance_after: str
    change: str
    balance_before: str
    balance_after: str
    cost_fifo: str
    cost_average: str


class StockIssueOut(BaseModel):
    message: str = "stock issued"
    stock_id: int
    quantity_old: str
    balance: str
    transaction_id: int
    movements: List[MovementOut]
