"""Observability utilities."""

from .audit import RequestAuditMiddleware, RequestAuditRecord
from .metrics import (
    AUDIT_CHAIN_APPEND_COUNTER,
    AUDIT_CHAIN_BREAKS_GAUGE,
    LOTTERY_DRAW_COUNTER,
    REQUEST_COUNTER,
    REQUEST_ERROR_COUNTER,
    REQUEST_LATENCY_SECONDS,
    WINNER_NOTIFICATION_FAILURES,
    PrometheusMiddleware,
    metrics_router,
    record_draw,
)
from .tracing import (
    draw_span,
    initialise_tracing,
    inject_traceparent,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    span_from_traceparent,
)

__all__ = [
    "AUDIT_CHAIN_APPEND_COUNTER",
    "AUDIT_CHAIN_BREAKS_GAUGE",
    "LOTTERY_DRAW_COUNTER",
    "PrometheusMiddleware",
    "REQUEST_COUNTER",
    "REQUEST_ERROR_COUNTER",
    "REQUEST_LATENCY_SECONDS",
    "RequestAuditMiddleware",
    "RequestAuditRecord",
    "WINNER_NOTIFICATION_FAILURES",
    "draw_span",
    "initialise_tracing",
    "inject_traceparent",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "metrics_router",
    "record_draw",
    "span_from_traceparent",
]
