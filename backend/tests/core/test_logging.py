"""Tests for structured logging and the request logging middleware."""

import json
import logging
import sys
import uuid

from fastapi.testclient import TestClient

from livecast.core.logging import (
    StructuredFormatter,
    clear_correlation_id,
    log_info,
    set_correlation_id,
)
from livecast.main import app


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "livecast.test", logging.INFO, __file__, 1, message, None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_extra_fields_and_correlation_id_are_emitted(self) -> None:
        stream_id = uuid.uuid4()
        set_correlation_id("corr-1")
        try:
            line = StructuredFormatter().format(
                _record("Recording attached", stream_id=stream_id, pages=3)
            )
        finally:
            clear_correlation_id()

        data = json.loads(line)
        assert data["message"] == "Recording attached"
        assert data["correlation_id"] == "corr-1"
        assert data["extra"] == {"stream_id": str(stream_id), "pages": 3}

    def test_exception_is_serialized_with_stack(self) -> None:
        try:
            raise ValueError("bad page")
        except ValueError:
            record = _record("Listing failed")
            record.exc_info = sys.exc_info()

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad page"
        assert any("bad page" in line for line in data["exception"]["stack_trace"])


def test_log_info_carries_current_correlation_id(caplog) -> None:
    logger = logging.getLogger("livecast.test")
    set_correlation_id("corr-2")
    try:
        with caplog.at_level(logging.INFO, logger="livecast.test"):
            log_info(logger, "Recording not available yet", channel_id="abc")
    finally:
        clear_correlation_id()

    record = caplog.records[-1]
    assert record.correlation_id == "corr-2"
    assert record.channel_id == "abc"


def test_request_logging_uses_request_correlation_id(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="livecast.requests"):
        with TestClient(app) as client:
            response = client.get("/health", headers={"X-Correlation-ID": "req-123"})

    assert response.headers["X-Correlation-ID"] == "req-123"
    completed = [r for r in caplog.records if r.getMessage() == "Request completed"]
    assert completed
    assert completed[-1].correlation_id == "req-123"
    assert completed[-1].status_code == 200
    assert completed[-1].path == "/health"
