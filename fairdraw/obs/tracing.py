"""OpenTelemetry tracing helpers for the API and the auto-draw worker."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.trace import Span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

_SERVICE_NAME_ATTRIBUTE = "service.name"
_TRACER_NAME = "fairdraw"


def _create_tracer_provider(service_name: str, endpoint: str | None) -> TracerProvider:
    provider = TracerProvider(resource=Resource(attributes={_SERVICE_NAME_ATTRIBUTE: service_name}))
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    return provider


def initialise_tracing(
    *,
    service_name: str,
    endpoint: str | None = None,
    instrument_logging: bool = True,
) -> None:
    """Install a global tracer provider unless one for ``service_name`` exists."""

    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider):
        if current.resource.attributes.get(_SERVICE_NAME_ATTRIBUTE) == service_name:
            return

    trace.set_tracer_provider(_create_tracer_provider(service_name, endpoint))
    if instrument_logging:
        LoggingInstrumentor().instrument(set_logging_format=True)


def instrument_fastapi_app(app: FastAPI) -> None:
    FastAPIInstrumentor().instrument_app(app)


def instrument_sqlalchemy_engine(engine: Any) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine)


@contextmanager
def span_from_traceparent(name: str, traceparent: str | None, **attributes: Any) -> Iterator[Span]:
    """Start a span, continuing the trace described by ``traceparent`` when given."""

    context = None
    if traceparent:
        context = TraceContextTextMapPropagator().extract(carrier={"traceparent": traceparent})
    with trace.get_tracer(_TRACER_NAME).start_as_current_span(name, context=context) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        yield span


@contextmanager
def draw_span(election_id: int, trigger: str) -> Iterator[Span]:
    """Span wrapping one lottery draw transaction."""

    with trace.get_tracer(_TRACER_NAME).start_as_current_span("lottery.draw") as span:
        span.set_attribute("lottery.election_id", election_id)
        span.set_attribute("lottery.trigger", trigger)
        yield span


def inject_traceparent(headers: dict[str, str]) -> dict[str, str]:
    """Copy ``headers`` and add the current trace context to it."""

    carrier: dict[str, str] = dict(headers)
    TraceContextTextMapPropagator().inject(carrier)
    return carrier


__all__ = [
    "draw_span",
    "initialise_tracing",
    "inject_traceparent",
    "instrument_fastapi_app",
    "instrument_sqlalchemy_engine",
    "span_from_traceparent",
]
