# stockq/main.py
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockq.api.routers.orders import router as orders_router
from stockq.api.routers.orders_queue import router as orders_queue_router
from stockq.api.routers.stock_issue import router as stock_issue_router
from stockq.api.routers.system import router as system_router
from stockq.core.config import AppSettings, get_settings
from stockq.core.logging import setup_logging
from stockq.db.session import build_engine, build_session_maker
from stockq.http_problem_handlers import register_exception_handlers
from stockq.obs.metrics import PrometheusMiddleware
from stockq.observability.reporter import ResultReporter
from stockq.observability.sinks import build_sinks
from stockq.services.task_enqueuer import TaskEnqueuer
from stockq.worker import create_celery

logger = logging.getLogger("stockq")


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    enqueuer: Optional[TaskEnqueuer] = None,
    reporter: Optional[ResultReporter] = None,
) -> FastAPI:
    """
    应用工厂：

    - 连接池由 lifespan 创建、退出时释放；测试可直接注入 session_maker / enqueuer / reporter
    - 不在模块导入时建任何连接
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if app.state.session_maker is None:
            engine = build_engine(settings)
            app.state.session_maker = build_session_maker(engine)
        if app.state.enqueuer is None:
            app.state.enqueuer = TaskEnqueuer(create_celery(settings))
        logger.info("stockq api started env=%s", settings.ENV)
        try:
            yield
        finally:
            if engine is not None:
                await engine.dispose()
            logger.info("stockq api stopped")

    app = FastAPI(
        title="stockq",
        version="1.0.0",
        debug=settings.DEBUG,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_maker = session_maker
    app.state.enqueuer = enqueuer
    app.state.reporter = reporter or ResultReporter(build_sinks(settings))

    app.add_middleware(PrometheusMiddleware)

    @app.middleware("http")
    async def _timing(request: Request, call_next):
        t0 = time.perf_counter()
        response = await call_next(request)
        logger.info("[%s] %s took %.4fs", request.method, request.url.path, time.perf_counter() - t0)
        return response

    register_exception_handlers(app)

    app.include_router(system_router)
    app.include_router(orders_queue_router)
    app.include_router(orders_router)
    app.include_router(stock_issue_router)
    return app


def run() -> None:
    """命令行入口：stockq-api"""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    uvicorn.run(
        "stockq.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8080,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
