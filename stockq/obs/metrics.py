# stockq/obs/metrics.py
import time

from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter("http_requests_total", "HTTP requests", ["method", "path", "code"])
http_request_duration = Histogram(
    "http_request_duration_seconds", "HTTP request duration seconds", ["method", "path"]
)
celery_active_tasks = Gauge("celery_active_tasks", "Celery active tasks")

# 扣减结果：path = queue|sync|fifo；outcome = ok|rejected|retry|dead_letter
ledger_deductions_total = Counter(
    "ledger_deductions_total", "Ledger deductions by entry path and outcome", ["path", "outcome"]
)
ledger_items_applied_total = Counter("ledger_items_applied_total", "Order lines applied to stock")
ledger_items_skipped_total = Counter(
    "ledger_items_skipped_total", "Order lines skipped as already applied (redelivery)"
)

sink_failures_total = Counter("sink_failures_total", "Observability sink failures", ["sink"])


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        # 用路由模板做 label，避免 /orders/{id} 按 id 炸开
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        http_requests_total.labels(request.method, path, str(response.status_code)).inc()
        http_request_duration.labels(request.method, path).observe(elapsed)
        return response
