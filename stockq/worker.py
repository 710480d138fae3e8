# stockq/worker.py
# Celery Worker（优先级队列 + Prometheus 指标 + 进程级 WorkerRuntime + 测试态 eager 执行）
from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Coroutine, Optional, TypeVar

from celery import Celery
from celery.signals import (
    setup_logging as celery_setup_logging,
    task_postrun,
    task_prerun,
    worker_process_init,
    worker_process_shutdown,
)
from kombu import Queue

from stockq.core.config import AppSettings, get_settings
from stockq.core.logging import setup_logging
from stockq.db.session import build_engine, build_session_maker
from stockq.models.enums import Lane
from stockq.obs.metrics import celery_active_tasks
from stockq.observability.reporter import ResultReporter
from stockq.observability.sinks import build_sinks

log = logging.getLogger("stockq.worker")

T = TypeVar("T")


def create_celery(settings: AppSettings) -> Celery:
    app = Celery(
        "stockq",
        broker=settings.REDIS_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["stockq.tasks"],
    )

    # 队列按列表顺序严格优先：critical 有任务时先消费 critical
    app.conf.task_queues = (Queue(Lane.CRITICAL.value), Queue(Lane.DEFAULT.value))
    app.conf.task_default_queue = Lane.DEFAULT.value
    app.conf.broker_transport_options = {
        "visibility_timeout": 3600,
        "queue_order_strategy": "priority",
    }

    # at-least-once：执行完才 ack；worker 崩溃时任务回到队列
    app.conf.task_acks_late = True
    app.conf.task_reject_on_worker_lost = True
    app.conf.worker_prefetch_multiplier = 1
    app.conf.worker_concurrency = settings.WORKER_CONCURRENCY

    app.conf.task_soft_time_limit = settings.TASK_SOFT_TIME_LIMIT
    app.conf.task_time_limit = settings.TASK_TIME_LIMIT
    app.conf.task_serializer = "json"
    app.conf.result_serializer = "json"
    app.conf.accept_content = ["json"]

    # === 测试/CI：任务在本进程直接执行，避免等待外部 worker ===
    testing = bool(os.getenv("PYTEST_CURRENT_TEST")) or os.getenv("CELERY_ALWAYS_EAGER") == "1"
    if testing:
        app.conf.task_always_eager = True
        app.conf.task_eager_propagates = True
    return app


celery = create_celery(get_settings())


# ---------------------------------------------------------------
# WorkerRuntime：每个 worker 进程一份（事件循环 + 连接池 + sink）
# ---------------------------------------------------------------
class WorkerRuntime:
    def __init__(
        self,
        settings: AppSettings,
        *,
        reporter: Optional[ResultReporter] = None,
    ) -> None:
        self.settings = settings
        self.loop = asyncio.new_event_loop()
        self.engine = build_engine(settings)
        self.session_maker = build_session_maker(self.engine)
        self.reporter = reporter or ResultReporter(build_sinks(settings))

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """
        在进程事件循环上跑完一个协程。

        soft time limit 等异常从 run_until_complete 中途抛出时，协程仍挂在循环上：
        先取消并跑到结束（会话退出、事务回滚、连接归还），再把异常原样抛出。
        """
        task = self.loop.create_task(coro)
        try:
            return self.loop.run_until_complete(task)
        except BaseException:
            if not task.done():
                task.cancel()
                self.loop.run_until_complete(asyncio.gather(task, return_exceptions=True))
                log.warning("worker runtime: interrupted attempt cancelled pid=%s", os.getpid())
            raise

    def close(self) -> None:
        try:
            self.loop.run_until_complete(self.engine.dispose())
        finally:
            self.loop.close()


_runtime: Optional[WorkerRuntime] = None


def init_runtime(settings: Optional[AppSettings] = None) -> WorkerRuntime:
    global _runtime
    if _runtime is None:
        _runtime = WorkerRuntime(settings or get_settings())
        log.info("worker runtime ready pid=%s", os.getpid())
    return _runtime


def get_runtime() -> WorkerRuntime:
    # solo / threads 池不会触发 worker_process_init，首个任务时建
    return _runtime or init_runtime()


def shutdown_runtime() -> None:
    global _runtime
    if _runtime is not None:
        _runtime.close()
        _runtime = None
        log.info("worker runtime closed pid=%s", os.getpid())


@celery_setup_logging.connect
def _on_setup_logging(**_):
    setup_logging(get_settings().LOG_LEVEL)


@worker_process_init.connect
def _on_process_init(**_):
    init_runtime()


@worker_process_shutdown.connect
def _on_process_shutdown(**_):
    shutdown_runtime()


@task_prerun.connect
def _on_task_start(task_id=None, task=None, args=None, kwargs=None, **_):
    celery_active_tasks.inc()


@task_postrun.connect
def _on_task_end(task_id=None, task=None, args=None, kwargs=None, retval=None, state=None, **_):
    celery_active_tasks.dec()
