"""Tests for per-connection logging context."""

import pytest
import structlog
from structlog.testing import LogCapture

from powgate.middleware.logging import connection_context, generate_correlation_id
from tests.test_utils import open_line_socket, send_line


@pytest.fixture
def log_output():
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture
    structlog.reset_defaults()


def test_correlation_id_format():
    correlation_id = generate_correlation_id()

    assert len(correlation_id) == 8  # 4 bytes as hex
    int(correlation_id, 16)


def test_correlation_ids_unique():
    assert generate_correlation_id() != generate_correlation_id()


def test_context_binds_remote_and_correlation_id(log_output):
    with connection_context("10.0.0.9") as correlation_id:
        structlog.get_logger().info("request_received", value="challenge")

    events = [entry["event"] for entry in log_output.entries]
    assert events == ["connection_opened", "request_received", "connection_closed"]
    for entry in log_output.entries:
        assert entry["correlation_id"] == correlation_id
        assert entry["remote"] == "10.0.0.9"
    assert "duration_ms" in log_output.entries[-1]


def test_context_cleared_after_connection(log_output):
    with connection_context("10.0.0.9"):
        pass

    assert structlog.contextvars.get_contextvars() == {}


def test_failure_is_logged_and_reraised(log_output):
    with pytest.raises(RuntimeError, match="boom"):
        with connection_context("10.0.0.9"):
            raise RuntimeError("boom")

    last = log_output.entries[-1]
    assert last["event"] == "connection_failed"
    assert last["error"] == "boom"
    assert last["log_level"] == "error"


def test_server_logs_carry_connection_context(log_output, quote_server):
    sock, reader = open_line_socket(quote_server.address)
    with sock:
        send_line(sock, reader, "challenge \n")

    created = [e for e in log_output.entries if e["event"] == "challenge_created"]
    assert len(created) == 1
    assert created[0]["remote"] == "127.0.0.1"
    assert len(created[0]["correlation_id"]) == 8
