# stockq/db/session.py
# Engine / AsyncSession 工厂：由进程入口（API lifespan / worker 进程初始化）显式创建并注入，
# 不在模块导入时建全局连接池。
from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from stockq.core.config import AppSettings
from stockq.infra import sql_tap

log = logging.getLogger("stockq.db")


# ---- DSN 归一：统一到 psycopg3 与 aiosqlite ----
def normalize_async_dsn(url: str) -> str:
    url = (url or "").strip()
    # 有些环境会把值写成 '"postgresql://..."'，统一剥掉两侧引号
    if len(url) >= 2 and url[0] == url[-1] and url[0] in ("'", '"'):
        url = url[1:-1].strip()
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite:///") - 1 :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def build_engine(settings: AppSettings) -> AsyncEngine:
    url = normalize_async_dsn(settings.DATABASE_URL)
    kwargs: dict = {"echo": settings.SQL_ECHO, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            isolation_level="SERIALIZABLE",
        )

    engine = create_async_engine(url, **kwargs)
    sql_tap.install(engine.sync_engine, slow_ms=settings.SLOW_SQL_MS)
    log.info("[DB] engine ready dialect=%s", engine.dialect.name)
    return engine


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# ---- FastAPI 依赖：每个请求独占一个连接，任何退出路径都归还 ----
async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    maker: async_sessionmaker[AsyncSession] = request.app.state.session_maker
    async with maker() as session:
        yield session
