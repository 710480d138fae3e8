# stockq/core/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

# PostgreSQL SQLSTATE：串行化失败 / 死锁
_TRANSIENT_SQLSTATES = {"40001", "40P01"}


class LedgerError(Exception):
    """
    账本错误基类：

    - error_code / message / context 直接映射为 Problem
    - transient=True 的错误交给队列重投；False 为永久失败
    """

    error_code: str = "ledger_error"
    http_status: int = 500
    transient: bool = False

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})
        self.details: List[Dict[str, Any]] = list(details or [])


class ValidationError(LedgerError):
    """请求/任务载荷不合法，进入账本之前被拒绝"""

    error_code = "validation_error"
    http_status = 422

    def __init__(self, field: str, reason: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            f"{field}: {reason}",
            context=context,
            details=[{"type": "validation", "path": field, "reason": reason}],
        )
        self.field = field
        self.reason = reason


class InsufficientStock(LedgerError):
    error_code = "insufficient_stock"
    http_status = 409


class InsufficientLotQuantity(LedgerError):
    error_code = "insufficient_lot_quantity"
    http_status = 409


class TransientDatabaseError(LedgerError):
    """串行化冲突 / 死锁 / 断连 / 懒创建并发撞唯一键：整单作为新尝试重来"""

    error_code = "transient_database_error"
    http_status = 503
    transient = True


class PersistenceError(LedgerError):
    """意外写入失败：预算内按瞬时错误重试，耗尽后转人工排查"""

    error_code = "persistence_error"
    http_status = 500
    transient = True


class OrderNotFound(LedgerError):
    error_code = "order_not_found"
    http_status = 404


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return str(code) if code else None


def _is_unique_violation(exc: IntegrityError, state: Optional[str]) -> bool:
    if state:
        return state == "23505"
    # sqlite 不带 SQLSTATE
    return "UNIQUE" in str(exc.orig).upper()


def classify_db_error(exc: Exception, *, op: str) -> LedgerError:
    """
    把 SQLAlchemy 异常归类为账本错误：

    - SQLSTATE 40001/40P01、连接失效、OperationalError → TransientDatabaseError
    - IntegrityError（并发懒创建同一 stock） → TransientDatabaseError
    - 其它 DBAPIError → PersistenceError
    """
    ctx = {"op": op, "db_error": type(exc).__name__}
    if isinstance(exc, DBAPIError):
        state = _sqlstate(exc)
        if state:
            ctx["sqlstate"] = state
        if state in _TRANSIENT_SQLSTATES or exc.connection_invalidated:
            return TransientDatabaseError(f"{op}: serialization conflict or lost connection", context=ctx)
        if isinstance(exc, OperationalError):
            return TransientDatabaseError(f"{op}: {exc.orig}", context=ctx)
        if isinstance(exc, IntegrityError) and _is_unique_violation(exc, state):
            return TransientDatabaseError(f"{op}: concurrent insert of the same key", context=ctx)
        return PersistenceError(f"{op}: {exc.orig}", context=ctx)
    return PersistenceError(f"{op}: {exc}", context=ctx)
