# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from stockq.core.config import AppSettings
from stockq.db.base import Base, init_models
from stockq.db.session import build_session_maker, normalize_async_dsn
from stockq.main import create_app
from stockq.observability.reporter import ResultReporter

from tests.helpers.fakes import FakeEnqueuer, RecordingSink

# ==========================
# 数据库 DSN：
#   默认每用例一个 SQLite 文件（aiosqlite）；
#   设置 STOCKQ_TEST_DATABASE_URL 时走 PostgreSQL（并发用例只在 PG 上跑）
# ==========================
PG_DATABASE_URL = os.getenv("STOCKQ_TEST_DATABASE_URL")

IS_PG = bool(PG_DATABASE_URL) and PG_DATABASE_URL.startswith("postgres")


def pytest_collection_modifyitems(config, items):
    if IS_PG:
        return
    skip_pg = pytest.mark.skip(reason="needs STOCKQ_TEST_DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "pg_only" in item.keywords:
            item.add_marker(skip_pg)


@pytest.fixture
def database_url(tmp_path) -> str:
    if PG_DATABASE_URL:
        return normalize_async_dsn(PG_DATABASE_URL)
    return f"sqlite+aiosqlite:///{tmp_path / 'stockq_test.db'}"


@pytest.fixture
def settings(database_url: str) -> AppSettings:
    return AppSettings(
        ENV="test",
        DATABASE_URL=database_url,
        OPENSEARCH_URL="",
        DASHBOARD_WEBHOOK_URL="",
        TASK_SOFT_TIME_LIMIT=30,
    )


# =========================================
# 每用例独立 Engine（NullPool，避免跨 loop），建表 → 用例 → 释放
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = create_async_engine(database_url, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_maker(async_engine)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    标准 Session：账本引擎自己开事务，用例里造数/查询后需 commit 结束当前事务
    """
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


# =========================================
# 观测 / 队列替身
# =========================================
@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def reporter(recording_sink: RecordingSink) -> ResultReporter:
    return ResultReporter([recording_sink])


@pytest.fixture
def fake_enqueuer() -> FakeEnqueuer:
    return FakeEnqueuer()


# =========================================
# HTTP 客户端（ASGITransport 不跑 lifespan，依赖直接注入）
# =========================================
@pytest_asyncio.fixture
async def client(
    settings: AppSettings,
    async_session_maker,
    fake_enqueuer: FakeEnqueuer,
    reporter: ResultReporter,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(
        settings,
        session_maker=async_session_maker,
        enqueuer=fake_enqueuer,
        reporter=reporter,
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
