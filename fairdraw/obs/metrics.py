"""Prometheus metrics utilities for API and worker processes."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "Latency of HTTP requests in seconds.",
    labelnames=("method", "path"),
)
REQUEST_COUNTER = Counter(
    "http_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "path", "status"),
)
REQUEST_ERROR_COUNTER = Counter(
    "http_request_errors_total",
    "Total number of HTTP requests that resulted in server errors.",
    labelnames=("method", "path", "status"),
)
LOTTERY_DRAW_COUNTER = Counter(
    "lottery_draws_total",
    "Lottery draw attempts by trigger and outcome.",
    labelnames=("trigger", "outcome"),
)
AUDIT_CHAIN_APPEND_COUNTER = Counter(
    "audit_chain_appends_total",
    "Events appended to the hash-chained audit log.",
    labelnames=("event_type",),
)
AUDIT_CHAIN_BREAKS_GAUGE = Gauge(
    "audit_chain_breaks",
    "Broken links found by the most recent audit chain verification.",
)
WINNER_NOTIFICATION_FAILURES = Counter(
    "winner_notifications_failed_total",
    "Winner notifications that could not be delivered.",
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics for Prometheus scraping."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        method = request.method
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        start_time = time.perf_counter()
        status = "500"

        try:
            response = await call_next(request)
            route = request.scope.get("route")
            path = getattr(route, "path", None) or path
            status = str(response.status_code)
            if response.status_code >= 500:
                REQUEST_ERROR_COUNTER.labels(method=method, path=path, status=status).inc()
            return response
        except Exception:
            REQUEST_ERROR_COUNTER.labels(method=method, path=path, status="500").inc()
            raise
        finally:
            latency = time.perf_counter() - start_time
            REQUEST_LATENCY_SECONDS.labels(method=method, path=path).observe(latency)
            REQUEST_COUNTER.labels(method=method, path=path, status=status).inc()


metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Expose Prometheus metrics for scraping."""
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


def record_draw(trigger: str, outcome: str) -> None:
    """Count a draw attempt, e.g. ``record_draw("manual", "completed")``."""
    LOTTERY_DRAW_COUNTER.labels(trigger=trigger, outcome=outcome).inc()


__all__ = [
    "AUDIT_CHAIN_APPEND_COUNTER",
    "AUDIT_CHAIN_BREAKS_GAUGE",
    "LOTTERY_DRAW_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "WINNER_NOTIFICATION_FAILURES",
    "metrics_endpoint",
    "metrics_router",
    "record_draw",
]
