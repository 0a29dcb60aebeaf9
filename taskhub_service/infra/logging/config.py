"""Logging configuration setup.

- dictConfig for the root logger and its filters
- QueueHandler + QueueListener so handlers never block the event loop
- ContextInjectingFilter for contextvars propagation
- JSONL output for machine parsing
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from .context import ContextInjectingFilter
from .formatters import JSONFormatter

if TYPE_CHECKING:
    from taskhub_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False
_ATEXIT_REGISTERED = False

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def shutdown() -> None:
    """Stop the QueueListener, flushing queued records, and detach the root handler."""
    global _log_queue, _listener, _queue_handler

    if _listener is not None:
        _listener.stop()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None

    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Configure logging once across entrypoints (app factory, CLI).

    Args:
        log_settings: Logging settings; loaded via get_logging_settings() when omitted.
        force: Reconfigure even if logging was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from taskhub_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    log_config = {**log_settings.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "taskhub-service",
    capture_warnings: bool = True,
    **kwargs: Any,
) -> None:
    """Configure the root logger with dictConfig and the queue pattern.

    Example:
        configure_logging(log_level="DEBUG", json_logs=False)
    """
    global _log_queue, _listener, _queue_handler, _ATEXIT_REGISTERED

    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs)))

    if capture_warnings:
        logging.captureWarnings(True)

    shutdown()

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            # Only the root level is set; handlers installed by others (pytest, uvicorn) stay
            "incremental": True,
            "root": {"level": log_level.upper()},
        }
    )

    handlers: list[logging.Handler] = []
    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(_build_formatter(json_logs, service_name))
        handlers.append(console_handler)

    if path:
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_build_formatter(json_logs, service_name))
        handlers.append(file_handler)

    _log_queue = Queue()
    if handlers:
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        if not _ATEXIT_REGISTERED:
            atexit.register(shutdown)
            _ATEXIT_REGISTERED = True

    _queue_handler = QueueHandler(_log_queue)
    # Root logger filters skip records propagated from child loggers, so the
    # context filter sits on the handler.
    if include_context:
        _queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_queue_handler)


def _build_formatter(json_logs: bool, service_name: str) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(
            fmt_keys={"level": "levelname", "logger": "name", "message": "message"},
            static={"service": service_name},
        )
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATEFMT)


__all__ = ["configure_logging", "setup_logging", "shutdown"]
