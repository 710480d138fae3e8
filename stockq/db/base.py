# stockq/db/base.py
from __future__ import annotations

import importlib
import logging
from typing import Iterable, List

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("stockq.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False

MODEL_MODULES = [
    "stockq.models.stock",
    "stockq.models.lot",
    "stockq.models.stock_movement",
    "stockq.models.transaction",
    "stockq.models.stock_balance",
    "stockq.models.order",
]


def init_models(extra_modules: Iterable[str] | None = None, *, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射（create_all / alembic 之前调用）。
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    loaded: List[str] = []
    for mod in [*MODEL_MODULES, *(extra_modules or [])]:
        importlib.import_module(mod)
        loaded.append(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(loaded))
