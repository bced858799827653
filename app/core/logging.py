"""Structured JSON logging for the gadget service.

Domain events (``self_destruct.initiated``, ``gadget.created`` and so on) go
through ``log_event`` and carry their fields under ``extra_data``. The
formatter masks any field named in ``REDACTED_FIELDS`` so confirmation codes
and credentials never reach the log stream, whoever logged them.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var

REDACTED = "[redacted]"
# Compared case-insensitively against extra field names.
REDACTED_FIELDS = frozenset(
    {
        "code",
        "confirmation_code",
        "confirmationcode",
        "password",
        "access_token",
        "refresh_token",
        "authorization",
    }
)


def redact(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: REDACTED if str(key).lower() in REDACTED_FIELDS else value for key, value in fields.items()}


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log ``event`` as the message with ``fields`` attached as structured data."""
    logger.log(level, event, extra={"extra_data": fields})


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, with the request context and redacted extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        request_id = request_id_ctx_var.get()
        if request_id:
            payload["request_id"] = request_id
        principal = principal_ctx_var.get()
        if principal:
            payload["principal"] = principal
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            # Extras never shadow the envelope keys above.
            for key, value in redact(extra).items():
                payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel(level.upper())
