"""OpenTelemetry distributed tracing configuration."""

import logging
from contextlib import contextmanager
from typing import Optional

from opentelemetry import trace
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

_tracer: Optional[trace.Tracer] = None
_provider: Optional[TracerProvider] = None


def setup_tracing(
    service_name: str,
    service_version: str,
    environment: str = "development",
    enable_console_export: bool = False,
) -> trace.Tracer:
    """Set up OpenTelemetry tracing.

    Args:
        service_name: Name of the service
        service_version: Version of the service
        environment: Deployment environment
        enable_console_export: Enable console span export for debugging

    Returns:
        Configured tracer instance
    """
    global _tracer, _provider

    resource = Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
        "deployment.environment": environment,
    })
    _provider = TracerProvider(resource=resource)

    if enable_console_export:
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console span export enabled")

    trace.set_tracer_provider(_provider)
    set_global_textmap(TraceContextTextMapPropagator())

    _tracer = trace.get_tracer(service_name, service_version)
    logger.info(f"Tracing initialized for {service_name} v{service_version}")
    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the configured tracer, or a no-op tracer before setup."""
    if _tracer is None:
        return trace.get_tracer(__name__)
    return _tracer


def get_current_span() -> Optional[Span]:
    return trace.get_current_span()


def get_trace_id() -> Optional[str]:
    """Get the current trace ID as a hex string."""
    span = get_current_span()
    if span and span.get_span_context().is_valid:
        return format(span.get_span_context().trace_id, "032x")
    return None


def get_span_id() -> Optional[str]:
    """Get the current span ID as a hex string."""
    span = get_current_span()
    if span and span.get_span_context().is_valid:
        return format(span.get_span_context().span_id, "016x")
    return None


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
):
    """Create a new span as a context manager.

    Args:
        name: Span name
        attributes: Optional span attributes
        kind: Span kind

    Yields:
        The created span
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=attributes or {},
    ) as span:
        yield span


def add_span_attributes(attributes: dict) -> None:
    """Add attributes to the current span."""
    span = get_current_span()
    if span:
        for key, value in attributes.items():
            span.set_attribute(key, value)


def record_exception(exception: Exception, attributes: Optional[dict] = None) -> None:
    """Record an exception on the current span and mark it as failed."""
    span = get_current_span()
    if span:
        span.record_exception(exception, attributes=attributes)
        span.set_status(Status(StatusCode.ERROR, str(exception)))

