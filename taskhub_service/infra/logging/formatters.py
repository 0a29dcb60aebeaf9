"""JSON Lines formatter."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

# LogRecord attributes that are never copied into the JSON body
_RESERVED = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    }
)


class JSONFormatter(logging.Formatter):
    """Structured JSON Lines (JSONL) formatter with UTC timestamps.

    One JSON object per line. Fields from ``extra=`` and from the context
    filter are emitted at the top level next to the fixed keys.

    Example output:
        {"level": "INFO", "logger": "taskhub_service.infra.messaging.hub", "message": "Event dispatched", "timestamp": "2026-01-01T00:00:00.123Z", "service": "taskhub-service", "tenant_id": "T1"}
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.fmt_keys = fmt_keys or {
            "level": "levelname",
            "logger": "name",
            "message": "message",
        }
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        data: dict[str, Any] = {k: getattr(record, v, None) for k, v in self.fmt_keys.items()}

        data["timestamp"] = (
            datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            data["stack_trace"] = record.stack_info

        data.update(self.static)

        for key, value in record.__dict__.items():
            if key not in _RESERVED and key not in data:
                data[key] = value

        # json.dumps escapes embedded newlines, so each record stays on one line
        return json.dumps(data, ensure_ascii=False, default=str)


__all__ = ["JSONFormatter"]
