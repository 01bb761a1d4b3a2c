"""
Structured logging for the tag question service.
One JSON object per line on stdout, carrying whatever request context the
middleware has bound (request_id, ip_address).
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

# Third-party loggers that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "openai")


def setup_logging(log_level: str = "INFO") -> None:
    """
    Route structlog through the stdlib and render JSON.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**fields: Any) -> None:
    """Replace the per-request log context with fields."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**fields)


# Convenience functions for common log patterns
def log_request(method: str, path: str, status_code: int, duration_ms: float, user_id: str = None):
    """One line per HTTP request; 4xx/5xx at warning."""
    fields = {
        "event_type": "http_request",
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
    }
    if user_id:
        fields["user_id"] = user_id

    logger = get_logger("http")
    if status_code >= 400:
        logger.warning("HTTP request failed", **fields)
    else:
        logger.info("HTTP request completed", **fields)


def log_dispatch(
    outcome: str,
    team_id: str,
    requester_id: str,
    tag_count: int,
    recipient_count: int = 0,
    conversation_id: str | None = None,
    error: str | None = None,
):
    """
    One line per ask-question call.

    delivered logs at info, delivery_failed at error, and the outcomes where
    nothing was sent (validation, empty audience) at warning.
    """
    fields = {
        "event_type": "question_dispatch",
        "outcome": outcome,
        "team_id": team_id,
        "requester_id": requester_id,
        "tag_count": tag_count,
        "recipient_count": recipient_count,
    }
    if conversation_id:
        fields["conversation_id"] = conversation_id
    if error:
        fields["error"] = error

    logger = get_logger("dispatch")
    if outcome == "delivered":
        logger.info("Question dispatched", **fields)
    elif outcome == "delivery_failed":
        logger.error("Question dispatch failed", **fields)
    else:
        logger.warning("Question not dispatched", **fields)
