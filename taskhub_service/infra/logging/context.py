"""Context propagation for structured logging.

Fields set here (tenant_id, event_id, handler_id, message_id, ...) ride along
on every record logged from the same asyncio task. Each task created by the
hub or a queue consumer starts from a copy of its parent's context, so values
set inside one delivery never leak into another.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        set_log_context(tenant_id="T1", event_id=event.event_id)
        logger.info("Dispatching")  # includes tenant_id and event_id
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    return _log_context.get().copy()


def clear_log_context() -> None:
    _log_context.set({})


def remove_from_log_context(*keys: str) -> None:
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Temporarily add fields to the logging context.

    Example:
        with log_context(message_id=lease.message.message_id):
            await apply(lease)
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Copy the contextvars log context onto each LogRecord.

    Attached to the queue handler by ``configure_logging``; explicit ``extra``
    values win over context values.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


__all__ = [
    "ContextInjectingFilter",
    "clear_log_context",
    "get_log_context",
    "log_context",
    "remove_from_log_context",
    "set_log_context",
]
