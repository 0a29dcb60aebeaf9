"""Registry of exception types that are never retried.

Handlers and the application can register their own permanent failure types
at runtime; the handler pool maps them to a ``fatal`` outcome so the hub
dead-letters the delivery without retrying it.
"""

from __future__ import annotations

import threading

_registered: set[type[BaseException]] = set()
_lock = threading.Lock()


def register_non_retryable(*exception_classes: type[BaseException]) -> None:
    """Register exception types (and their subclasses) as non-retryable.

    Example:
        class MalformedAttachmentError(Exception):
            pass

        register_non_retryable(MalformedAttachmentError)
        assert is_non_retryable_exception(MalformedAttachmentError())
    """
    with _lock:
        _registered.update(exception_classes)


def unregister_non_retryable(*exception_classes: type[BaseException]) -> None:
    """Remove previously registered exception types."""
    with _lock:
        for exc_class in exception_classes:
            _registered.discard(exc_class)


def is_non_retryable_exception(exception: BaseException) -> bool:
    """Check whether ``exception`` is an instance of a registered type."""
    with _lock:
        registered = tuple(_registered)
    return bool(registered) and isinstance(exception, registered)


def registered_non_retryable() -> frozenset[type[BaseException]]:
    """Snapshot of the registered types."""
    with _lock:
        return frozenset(_registered)


__all__ = [
    "is_non_retryable_exception",
    "register_non_retryable",
    "registered_non_retryable",
    "unregister_non_retryable",
]
