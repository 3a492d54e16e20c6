"""
Connection logging with correlation ID support.

Generates a unique correlation ID for each accepted connection, binds it and
the remote address to the structlog context of the worker thread, and logs
connection open/close with timing information.
"""

import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def generate_correlation_id() -> str:
    """Generate an 8-character correlation ID."""
    return secrets.token_hex(4)


@contextmanager
def connection_context(remote: str) -> Iterator[str]:
    """
    Scope structlog context to one connection.

    Logs:
    - connection_opened: remote, correlation_id
    - connection_closed: remote, duration_ms, correlation_id
    - connection_failed: on an exception escaping the worker
    """
    correlation_id = generate_correlation_id()
    start_time = time.perf_counter()

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id, remote=remote)

    logger = structlog.get_logger()
    logger.info("connection_opened")

    try:
        yield correlation_id
    except Exception as e:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.error(
            "connection_failed",
            error=str(e),
            duration_ms=round(duration_ms, 2),
            exc_info=True,
        )
        raise
    else:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info("connection_closed", duration_ms=round(duration_ms, 2))
    finally:
        structlog.contextvars.clear_contextvars()
