# stockq/infra/sql_tap.py
from __future__ import annotations

import logging
from time import perf_counter

from sqlalchemy import event
from sqlalchemy.engine import Engine

log = logging.getLogger("stockq.sql")


def _preview(statement: str) -> str:
    # 截断 statement，避免日志过长
    return " ".join(str(statement).split())[:400]


def install(engine: Engine, *, slow_ms: float = 50.0) -> None:
    """
    SQL 观测钩子：
    - DEBUG 级别逐条记录 SQL + 参数
    - 超过 slow_ms 的语句以 WARNING 记录
    """

    @event.listens_for(engine, "before_cursor_execute")
    def _before(conn, cursor, statement, parameters, context, executemany):
        context._stockq_t0 = perf_counter()
        if log.isEnabledFor(logging.DEBUG):
            log.debug("sql=%s args=%s", _preview(statement), parameters)

    @event.listens_for(engine, "after_cursor_execute")
    def _after(conn, cursor, statement, parameters, context, executemany):
        t0 = getattr(context, "_stockq_t0", None)
        if t0 is None:
            return
        dt_ms = (perf_counter() - t0) * 1000.0
        if dt_ms >= slow_ms:
            log.warning("slow_sql elapsed_ms=%.2f sql=%s", dt_ms, _preview(statement))
