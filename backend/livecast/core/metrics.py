"""Prometheus metrics for HTTP traffic and recording reconciliation."""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

REGISTRY = CollectorRegistry()

# Check if running in multiprocess mode (e.g., with gunicorn)
if "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "livecast_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Recording Reconciliation Metrics
# ============================================
RECORDING_LOOKUPS_TOTAL = Counter(
    "recording_lookups_total",
    "Single-stream recording lookups by outcome",
    ["outcome"],  # found, not_found, storage_error
    registry=REGISTRY,
)

RECORDING_MATCHES_TOTAL = Counter(
    "recording_matches_total",
    "Streams matched to a recording by the bulk matcher",
    ["strategy"],  # exact, same_day
    registry=REGISTRY,
)

RECORDING_STORAGE_ERRORS_TOTAL = Counter(
    "recording_storage_errors_total",
    "Object storage failures during reconciliation",
    ["operation"],
    registry=REGISTRY,
)

RECORDING_LISTING_PAGES_TOTAL = Counter(
    "recording_listing_pages_total",
    "Object listing pages fetched while scanning for recordings",
    registry=REGISTRY,
)

RECORDING_RECONCILE_DURATION_SECONDS = Histogram(
    "recording_reconcile_duration_seconds",
    "Duration of a bulk reconciliation pass",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)


def set_app_info(version: str, environment: str) -> None:
    """Set application info metric."""
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })


def get_metrics() -> bytes:
    """Render all metrics in Prometheus exposition format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
