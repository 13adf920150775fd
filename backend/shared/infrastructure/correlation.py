"""
Correlation IDs for log tracing.

Every unit of work (a CLI command, an upstream request handed to the core)
can run inside a correlation scope; all log records emitted inside it,
including background event publishing, carry the same correlation id.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# Context variable for correlation ID (thread and task local)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID."""
    return correlation_id_var.get()


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """
    Bind a correlation ID for the duration of the block.

    Usage:
        with correlation_scope(request_id) as cid:
            service.create_order(...)

    A new UUID is generated when no ID is supplied.
    """
    cid = correlation_id or str(uuid.uuid4())
    token = correlation_id_var.set(cid)
    try:
        yield cid
    finally:
        correlation_id_var.reset(token)


class CorrelationIdFilter(logging.Filter):
    """
    Logging filter that adds correlation_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        return True
