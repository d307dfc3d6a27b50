"""
Handoff Logging
===============
Structured logging setup for services embedding the handoff core.

All modules log through structlog. ``setup_logging`` routes structlog into
stdlib logging so the host's handlers see every event, rendered as JSON
for production or as ``key=value`` text for development.

Usage:
    from handoff_auth.logconfig import setup_logging

    setup_logging(service_name="s3-gateway")
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from structlog.contextvars import get_contextvars

service_name_var: ContextVar[str] = ContextVar("service_name", default="unknown")


def _to_stdlib_kwargs(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Final structlog processor: hand the event dict to stdlib as extra data."""
    event = event_dict.pop("event", "")
    exc_info = event_dict.pop("exc_info", False)
    return {"msg": event, "exc_info": exc_info, "extra": {"extra_data": event_dict}}


class JSONFormatter(logging.Formatter):
    """
    Formats log records as one JSON object per line.

    The transaction id bound by ``HandoffHelper.auth`` is copied to the top
    level so records from stdlib loggers (grpc, httpx) inside an
    authentication can be joined to it. Structlog key/value context is
    merged into the top level too.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": service_name_var.get(),
        }

        trans_id = get_contextvars().get("trans_id")
        if trans_id is not None:
            log_data["trans_id"] = trans_id

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class KeyValueFormatter(logging.Formatter):
    """Human readable format with structlog context appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = getattr(record, "extra_data", None)
        if extra:
            line += " | " + " ".join(f"{k}={v}" for k, v in extra.items())
        return line


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> logging.Logger:
    """
    Configure stdlib logging and structlog.

    Args:
        service_name: Name reported in every JSON record
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to output JSON (for production)

    Returns:
        Configured root logger
    """
    service_name_var.set(service_name)
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if json_output else KeyValueFormatter())
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            _to_stdlib_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info("logging_configured", service=service_name)
    return root_logger
