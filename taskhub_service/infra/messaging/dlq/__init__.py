"""Retry policy, dead-letter storage and alerting."""

from .alerting import AlertChannel, AlertSeverity, DeadLetterAlert, DeadLetterAlerter
from .calculator import calculate_delay, delay_seconds
from .config import DLQConfig, RetryPolicy
from .exceptions import (
    is_non_retryable_exception,
    register_non_retryable,
    unregister_non_retryable,
)
from .store import (
    DeadLetterEntry,
    DeadLetterKind,
    DeadLetterReason,
    DeadLetterStatus,
    DeadLetterStore,
)

__all__ = [
    "AlertChannel",
    "AlertSeverity",
    "DLQConfig",
    "DeadLetterAlert",
    "DeadLetterAlerter",
    "DeadLetterEntry",
    "DeadLetterKind",
    "DeadLetterReason",
    "DeadLetterStatus",
    "DeadLetterStore",
    "RetryPolicy",
    "calculate_delay",
    "delay_seconds",
    "is_non_retryable_exception",
    "register_non_retryable",
    "unregister_non_retryable",
]
