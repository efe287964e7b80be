"""Per-event log context, JSON logs and OTLP tracing for the bridge.

Every inbound event gets a context id. Once the payload is parsed, the router
binds ``dev_eui`` and ``event`` as well, so any log line emitted while that event
is being encoded or delivered carries all three without call sites repeating
them.
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping

from fastapi import FastAPI, Request, Response
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from starlette.middleware.base import BaseHTTPMiddleware

CONTEXT_ID_HEADER = "X-Request-ID"
EVENT_CONTEXT_KEYS = ("ctx_id", "dev_eui", "event")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_event_context: ContextVar[Mapping[str, str]] = ContextVar("event_context", default=_EMPTY)

_tracer = trace.get_tracer("lorawan_bridge")

_RECORD_ATTRIBUTES = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "service",
    "trace_id",
    "span_id",
    *EVENT_CONTEXT_KEYS,
}


def generate_ctx_id() -> str:
    return uuid.uuid4().hex


def get_event_context() -> Mapping[str, str]:
    return _event_context.get()


def get_ctx_id() -> str | None:
    return _event_context.get().get("ctx_id")


@contextmanager
def bind_event_context(**fields: str | None) -> Iterator[Mapping[str, str]]:
    """Layer ``fields`` over the current event context until the block exits."""

    merged = dict(_event_context.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    token = _event_context.set(MappingProxyType(merged))
    try:
        yield _event_context.get()
    finally:
        _event_context.reset(token)


@contextmanager
def event_span(event: str, dev_eui: str) -> Iterator[Any]:
    """Span covering the encode and delivery of one integration event."""

    with _tracer.start_as_current_span(f"lorawan.{event}") as span:
        span.set_attribute("lorawan.event", event)
        span.set_attribute("lorawan.dev_eui", dev_eui)
        ctx_id = get_ctx_id()
        if ctx_id:
            span.set_attribute("lorawan.ctx_id", ctx_id)
        yield span


class ContextIdMiddleware(BaseHTTPMiddleware):
    """Open an event context per request, reusing the caller's id when sent."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        ctx_id = request.headers.get(CONTEXT_ID_HEADER) or generate_ctx_id()
        with bind_event_context(ctx_id=ctx_id):
            response = await call_next(request)
        response.headers[CONTEXT_ID_HEADER] = ctx_id
        return response


class EventContextFilter(logging.Filter):
    """Stamp records with the service name, bound event fields and trace ids."""

    def __init__(self, service: str) -> None:
        super().__init__()
        self._service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self._service
        context = _event_context.get()
        for key in EVENT_CONTEXT_KEYS:
            if getattr(record, key, None) is None:
                setattr(record, key, context.get(key))
        span_ctx = trace.get_current_span().get_span_context()
        record.trace_id = f"{span_ctx.trace_id:032x}" if span_ctx.is_valid else None
        record.span_id = f"{span_ctx.span_id:016x}" if span_ctx.is_valid else None
        return True


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": getattr(record, "service", None),
        }
        for key in (*EVENT_CONTEXT_KEYS, "trace_id", "span_id"):
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        extra = {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRIBUTES}
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(service: str, level: str = "INFO") -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(EventContextFilter(service))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    # uvicorn installs its own handlers; route them through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False
    return handler


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    """``key=value,key2=value2`` as used by ``OTEL_EXPORTER_OTLP_HEADERS``."""

    headers: dict[str, str] = {}
    for item in (raw or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def configure_tracing(
    app: FastAPI,
    *,
    service_name: str,
    service_version: str | None,
    otlp_endpoint: str,
    otlp_headers: str | None,
    sample_ratio: float = 1.0,
) -> TracerProvider:
    attributes: dict[str, Any] = {"service.name": service_name}
    if service_version:
        attributes["service.version"] = service_version
    provider = TracerProvider(
        resource=Resource.create(attributes),
        sampler=TraceIdRatioBased(max(0.0, min(float(sample_ratio), 1.0))),
    )
    exporter = OTLPSpanExporter(endpoint=otlp_endpoint, headers=parse_otlp_headers(otlp_headers))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    return provider


def configure_observability(
    app: FastAPI,
    *,
    service_name: str,
    service_version: str | None,
    log_level: str,
    otel_enabled: bool,
    otlp_endpoint: str,
    otlp_headers: str | None,
    otel_sample_ratio: float = 1.0,
) -> None:
    configure_logging(service_name, log_level)
    app.add_middleware(ContextIdMiddleware)
    if otel_enabled:
        configure_tracing(
            app,
            service_name=service_name,
            service_version=service_version,
            otlp_endpoint=otlp_endpoint,
            otlp_headers=otlp_headers,
            sample_ratio=otel_sample_ratio,
        )
