# stockq/core/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from stockq.core.errors import LedgerError, classify_db_error


@asynccontextmanager
async def serializable_tx(session: AsyncSession, *, op: str) -> AsyncIterator[AsyncSession]:
    """
    账本事务：Serializable 隔离，正常退出 commit，任何异常 rollback。

    - 事务由本函数开启，调用方不得预先开启事务
    - 数据库异常（含 commit 阶段的串行化失败）统一归类为 LedgerError
    - SQLite 本身串行写入，不设置隔离级别
    """
    if session.in_transaction():
        raise RuntimeError(f"{op}: session already in a transaction; ledger owns the transaction boundary")

    try:
        async with session.begin():
            if session.bind is not None and session.bind.dialect.name == "postgresql":
                await session.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            yield session
    except LedgerError:
        raise
    except DBAPIError as exc:
        raise classify_db_error(exc, op=op) from exc
