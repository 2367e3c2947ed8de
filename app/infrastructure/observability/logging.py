"""
Structured logging setup for the contact desk service.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

# Set by RequestContextMiddleware for the lifetime of a request
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_request_context,
            # JSON formatting for production
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_request_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add the current request id to log entries if available."""
    request_id = request_id_var.get()
    if request_id and "request_id" not in event_dict:
        event_dict["request_id"] = request_id
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


# Convenience functions for common log patterns
def log_upstream_call(
    operation: str, method: str, status_code: int | None, duration_ms: float, error: str = None
):
    """Log SendGrid API calls with consistent fields."""
    logger = get_logger("sendgrid")

    log_data = {
        "operation": operation,
        "method": method,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "event": "upstream_call",
    }

    if error:
        log_data["error"] = error

    if status_code is None or status_code >= 400:
        logger.warning("SendGrid API call failed", **log_data)
    else:
        logger.debug("SendGrid API call completed", **log_data)


def log_request(method: str, path: str, status_code: int, duration_ms: float):
    """Log HTTP requests with consistent fields."""
    logger = get_logger("http")

    log_data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "event": "http_request",
    }

    if status_code >= 400:
        logger.warning("HTTP request failed", **log_data)
    else:
        logger.info("HTTP request completed", **log_data)
