"""
Centralized structured logging for the ordering core.
Uses Python's standard logging with JSON formatting for production.

Correlation IDs are attached to every record by CorrelationIdFilter.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs logs in a format easily parseable by log aggregation tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            log_data["correlation_id"] = correlation_id

        # Add extra fields if present
        if hasattr(record, "extra_data") and record.extra_data:
            log_data["data"] = record.extra_data

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add source location in debug mode
        if settings.debug:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            correlation_str = f"{self.DIM}[{correlation_id[:8]}]{self.RESET} "
        else:
            correlation_str = ""

        message = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{correlation_str}{record.name}: {record.getMessage()}"
        )

        if hasattr(record, "extra_data") and record.extra_data:
            data_str = " | ".join(f"{k}={v}" for k, v in record.extra_data.items())
            message += f" ({data_str})"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Custom logger that supports structured data.
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **kwargs: Any,
    ) -> None:
        """Log with optional structured data."""
        if not self.isEnabledFor(level):
            return
        if extra is None:
            extra = {}
        extra["extra_data"] = kwargs if kwargs else None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.ERROR, msg, args, exc_info=exc_info, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.CRITICAL, msg, args, exc_info=exc_info, **kwargs)


# Set custom logger class
logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Configure logging for the application.
    Call this once at process startup (CLI entry point, worker boot).
    """
    # Import here to avoid circular imports
    from shared.infrastructure.correlation import CorrelationIdFilter

    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())

    if settings.environment == "production":
        formatter = StructuredFormatter()
    else:
        formatter = DevelopmentFormatter()

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Order created", order_id=42, phone=mask_phone(phone))
        logger.error("Publish failed", topic="branch-1", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore


def mask_phone(phone: str | None) -> str:
    """
    Mask a customer phone number for logging to protect PII.

    Converts "+5491155551234" to "***1234". Only the last four digits are kept
    so support staff can still correlate log lines with a customer.
    """
    if not phone:
        return "<no-phone>"

    digits = phone.strip()
    if len(digits) <= 4:
        return "***"
    return f"***{digits[-4:]}"


# Pre-configured loggers for common modules
orders_logger = get_logger("ordering_core.orders")
availability_logger = get_logger("ordering_core.availability")
realtime_logger = get_logger("ordering_core.realtime")

# Dedicated security audit logger
security_audit_logger = get_logger("security.audit")


def audit_access_event(
    event_type: str,
    role: str | None = None,
    principal_branch_id: int | None = None,
    branch_id: int | None = None,
    action: str | None = None,
    allowed: bool = True,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """
    Log access-control decisions to the security audit trail.

    Denials are logged at WARNING so they surface in default log levels;
    grants are logged at DEBUG to keep the audit channel quiet.

    Args:
        event_type: Type of event (ACCESS_DENIED, AUTH_REQUIRED, ...)
        role: Role of the principal (if any)
        principal_branch_id: Branch the principal is bound to
        branch_id: Branch the action targets
        action: Action name being authorized
        allowed: Whether the action was allowed
        reason: Reason for denial (if applicable)
        **extra: Additional context data
    """
    log_level = logging.DEBUG if allowed else logging.WARNING

    security_audit_logger._log_with_data(
        log_level,
        f"ACCESS_AUDIT: {event_type}",
        args=(),
        event_type=event_type,
        role=role,
        principal_branch_id=principal_branch_id,
        branch_id=branch_id,
        action=action,
        allowed=allowed,
        reason=reason,
        **extra,
    )
