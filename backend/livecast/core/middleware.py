"""FastAPI middleware for monitoring, tracing, and logging."""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from livecast.core.logging import (
    clear_correlation_id,
    get_correlation_id,
    log_error,
    log_info,
    set_correlation_id,
)
from livecast.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)
from livecast.core.tracing import add_span_attributes, create_span, record_exception

_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)
_NUMERIC_ID_RE = re.compile(r"/\d+(?=/|$)")

request_logger = logging.getLogger("livecast.requests")


def normalize_path(path: str) -> str:
    """Replace UUIDs and numeric IDs with placeholders to bound label cardinality."""
    path = _UUID_RE.sub("{id}", path)
    return _NUMERIC_ID_RE.sub("/{id}", path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware for collecting HTTP request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = normalize_path(request.url.path)

        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=path).inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            HTTP_REQUEST_DURATION_SECONDS.labels(
                method=method, endpoint=path
            ).observe(duration)
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=path, status_code=str(status_code)
            ).inc()
            HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=path).dec()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware for managing correlation IDs."""

    CORRELATION_ID_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(
            self.CORRELATION_ID_HEADER,
            str(uuid.uuid4()),
        )
        set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[self.CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()


class TracingMiddleware(BaseHTTPMiddleware):
    """Middleware that wraps each request in a server span."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path

        with create_span(
            f"{method} {normalize_path(path)}",
            attributes={
                "http.method": method,
                "http.url": str(request.url),
                "http.route": path,
                "http.scheme": request.url.scheme,
                "http.user_agent": request.headers.get("user-agent", ""),
                "correlation_id": get_correlation_id(),
            },
            kind=trace.SpanKind.SERVER,
        ):
            try:
                response = await call_next(request)
                add_span_attributes({"http.status_code": response.status_code})
                return response
            except Exception as e:
                record_exception(e)
                raise


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line when a request starts and one when it ends."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        log_info(
            request_logger,
            "Request started",
            method=request.method,
            path=request.url.path,
            query=str(request.query_params),
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            log_error(
                request_logger,
                "Request failed",
                exception=e,
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        log_info(
            request_logger,
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return response


__all__ = [
    "MetricsMiddleware",
    "CorrelationIdMiddleware",
    "TracingMiddleware",
    "RequestLoggingMiddleware",
    "normalize_path",
]
