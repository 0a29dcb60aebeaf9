"""Logging infrastructure.

Structured JSONL logging with context propagation:

    from taskhub_service.infra.logging import set_log_context
    import logging

    logger = logging.getLogger(__name__)
    set_log_context(tenant_id="T1")
    logger.info("Publishing")  # includes tenant_id
"""

from taskhub_service.infra.logging.config import configure_logging, setup_logging, shutdown
from taskhub_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    remove_from_log_context,
    set_log_context,
)
from taskhub_service.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
