from __future__ import annotations

import json
import logging

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from opentelemetry import trace
from prometheus_client import REGISTRY

from fairdraw.obs import (
    PrometheusMiddleware,
    RequestAuditMiddleware,
    initialise_tracing,
    inject_traceparent,
    metrics_router,
    record_draw,
    span_from_traceparent,
)
from fairdraw.obs.audit import mask_mapping
from fairdraw.workers.observability import current_traceparent, worker_span


def test_metrics_endpoint_exposes_counters() -> None:
    app = FastAPI()
    app.add_middleware(PrometheusMiddleware)
    app.include_router(metrics_router)

    client = TestClient(app)
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text


def test_record_draw_counts_by_outcome() -> None:
    labels = {"trigger": "manual", "outcome": "completed"}
    before = REGISTRY.get_sample_value("lottery_draws_total", labels) or 0.0

    record_draw("manual", "completed")

    assert REGISTRY.get_sample_value("lottery_draws_total", labels) == before + 1


def test_span_from_traceparent_links_context() -> None:
    initialise_tracing(service_name="unit-test-service")
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span("parent"):
        carrier = inject_traceparent({})
        assert current_traceparent() == carrier["traceparent"]
    traceparent = carrier.get("traceparent")
    assert traceparent is not None

    with worker_span("child", traceparent) as span:
        assert span.get_span_context().trace_id == trace.get_current_span().get_span_context().trace_id
        parent_trace_id = int(traceparent.split("-")[1], 16)
        assert span.get_span_context().trace_id == parent_trace_id

    with span_from_traceparent("orphan", None, attempt=1) as span:
        assert span.get_span_context().trace_id != parent_trace_id


def test_request_audit_middleware_logs_masked_body(caplog) -> None:  # type: ignore[no-untyped-def]
    app = FastAPI()
    app.add_middleware(RequestAuditMiddleware, logger=logging.getLogger("tests.audit"))

    @app.post("/echo")
    async def echo(request: Request) -> dict[str, str]:
        request.state.actor_id = "admin-1"
        return {"ok": "yes"}

    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="tests.audit"):
        response = client.post(
            "/echo",
            json={"reason": "fraud", "token": "secret-token", "voting_id": "vote-123456"},
            headers={"User-Agent": "audit-test"},
        )

    assert response.status_code == 200
    assert "X-Request-ID" in response.headers
    audit_lines = [entry for entry in caplog.records if entry.name == "tests.audit"]
    record = json.loads(audit_lines[-1].getMessage())
    assert record["actor"] == "admin-1"
    assert record["body"]["reason"] == "fraud"
    assert record["body"]["token"] == "***oken"
    assert record["body"]["voting_id"] == "***3456"
    assert record["user_agent"] == "audit-test"


def test_mask_mapping_hides_sensitive_keys() -> None:
    masked = mask_mapping({"Authorization": "Bearer abcdef", "election_id": "4"})
    assert masked["Authorization"] == "***cdef"
    assert masked["election_id"] == "4"
