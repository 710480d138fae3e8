# stockq/api/problem.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypedDict

from stockq.core.errors import LedgerError


class ProblemDetail(TypedDict, total=False):
    # 必填
    type: str  # validation|shortage|state
    # 可选：用于行内定位
    path: str  # e.g. items[1].quantity
    reason: str

    required_qty: str
    available_qty: str
    short_qty: str


@dataclass(frozen=True)
class Problem:
    error_code: str
    message: str
    http_status: int
    context: Optional[Dict[str, Any]] = None
    details: Optional[List[ProblemDetail]] = None
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "http_status": int(self.http_status),
        }
        if self.context:
            out["context"] = self.context
        if self.details:
            out["details"] = self.details
        if self.trace_id:
            out["trace_id"] = self.trace_id
        return out


def new_trace_id() -> str:
    return f"t_{uuid.uuid4().hex[:12]}"


def make_problem(
    *,
    status_code: int,
    error_code: str,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    details: Optional[Sequence[ProblemDetail]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    p = Problem(
        error_code=str(error_code),
        message=str(message),
        http_status=int(status_code),
        context=context,
        details=list(details) if details else None,
        trace_id=trace_id,
    )
    return p.to_dict()


def problem_from_ledger_error(
    exc: LedgerError,
    *,
    context: Optional[Dict[str, Any]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    """账本错误 → Problem；请求上下文与错误自带的 context 合并"""
    merged: Dict[str, Any] = dict(context or {})
    merged.update(exc.context)
    return make_problem(
        status_code=exc.http_status,
        error_code=exc.error_code,
        message=exc.message,
        context=merged,
        details=exc.details,  # type: ignore[arg-type]
        trace_id=trace_id or new_trace_id(),
    )

