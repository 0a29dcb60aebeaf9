"""CLI utilities for running async operations and formatting output."""

from taskhub_service.cli.utils.async_runner import coro
from taskhub_service.cli.utils.formatters import (
    error,
    header,
    info,
    print_json,
    section,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "header",
    "info",
    "print_json",
    "section",
    "success",
    "warning",
]
