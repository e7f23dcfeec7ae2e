"""
Structured logging setup for the photo processing dashboard backend.
Provides JSON-formatted logs with consistent fields for queue monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


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
            _add_trace_context,
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
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_trace_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add trace context to log entries if available."""
    # Request-scoped ids are not propagated yet
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
def log_queue_event(
    queue_name: str,
    event_type: str,
    job_id: str | None,
    old_status: str | None = None,
    new_status: str | None = None,
    logged: bool = True,
):
    """Log a reconciled change event with consistent fields."""
    logger = get_logger("queue")

    log_data = {
        "queue_name": queue_name,
        "event_type": event_type,
        "job_id": job_id,
        "old_status": old_status,
        "new_status": new_status,
        "activity_logged": logged,
        "log_type": "queue_change",
    }

    logger.debug("Queue change applied", **log_data)


def log_batch_result(
    batch_number: int,
    offset: int,
    queued: int,
    skipped: int,
    next_offset: int | None = None,
    error: str = None,
):
    """Log a batch submission result with consistent fields."""
    logger = get_logger("batch")

    log_data = {
        "batch_number": batch_number,
        "offset": offset,
        "queued": queued,
        "skipped": skipped,
        "next_offset": next_offset,
        "log_type": "batch_submitted",
    }

    if error:
        log_data["error"] = error
        logger.warning("Batch submission failed", **log_data)
    else:
        logger.info("Batch submitted", **log_data)
