"""Logging setup: one stream handler, JSON lines in production."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger.json import JsonFormatter

# Correlation id of the HTTP request currently being served
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(request_id)s] %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamp every record with the current ``request_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


class LeaveflowJsonFormatter(JsonFormatter):
    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname


def setup_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Install the root handler. Safe to call more than once."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_leaveflow", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._leaveflow = True  # type: ignore[attr-defined]
    handler.addFilter(RequestIdFilter())
    if json_output:
        handler.setFormatter(
            LeaveflowJsonFormatter("%(timestamp)s %(level)s %(name)s %(request_id)s %(message)s"),
        )
    else:
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))

    root.addHandler(handler)
    root.setLevel(level.upper())

    # Quiet chatty libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
