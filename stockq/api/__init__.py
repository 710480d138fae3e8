# stockq/api/__init__.py
"""
API package bootstrap.

- 不做重导出
- 路由挂载由 `stockq/main.py::create_app` 负责
"""

__all__ = []
