# stockq/schemas/orders.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class OrderQueuedOut(BaseModel):
    task_id: str
    queue: str
    message: str = "order queued"


class OrderDeductOut(BaseModel):
    message: str
    results: Dict[str, Any]


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    store_id: Optional[int] = None
    channel_id: Optional[int] = None
    warehouse_id: int
    order_number: Optional[str] = None
    stock_method: Optional[str] = None
    order_id: Optional[str] = None

    reserved: bool
    issued: bool
    canceled: bool
    returned: bool
    status: bool
    activate: bool

    reserved_date: Optional[datetime] = None
    issued_date: Optional[datetime] = None
    canceled_date: Optional[datetime] = None
    returned_date: Optional[datetime] = None
    deleted_date: Optional[datetime] = None
    created_date: datetime
    updated_date: datetime
