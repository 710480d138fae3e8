# stockq/api/deps.py
from __future__ import annotations

from fastapi import Request

from stockq.core.config import AppSettings
from stockq.db.session import get_session
from stockq.observability.reporter import ResultReporter
from stockq.services.task_enqueuer import TaskEnqueuer

__all__ = ["get_session", "get_settings_dep", "get_reporter", "get_enqueuer"]


# ---------------------------
# 进程级对象：由 create_app / lifespan 挂到 app.state
# ---------------------------


def get_settings_dep(request: Request) -> AppSettings:
    return request.app.state.settings


def get_reporter(request: Request) -> ResultReporter:
    return request.app.state.reporter


def get_enqueuer(request: Request) -> TaskEnqueuer:
    return request.app.state.enqueuer
