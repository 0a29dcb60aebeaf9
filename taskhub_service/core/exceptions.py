"""Exception classes for the application.

HTTP-facing errors derive from ``AppException`` and are rendered as RFC 7807
problem details by the exception handlers in ``taskhub_service.app``.
``RetryableError`` and ``FatalError`` are signals raised by event handlers and
never leave the handler pool.
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    Follows RFC 7807 Problem Details for HTTP APIs.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=404,
            detail="Task 42 not found",
            type="task-not-found",
            extra={"task_id": "42"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")


class NotFoundException(AppException):
    """Raised when a resource does not exist."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ConflictException(AppException):
    """Raised when a request conflicts with current state."""

    def __init__(
        self,
        detail: str,
        type: str = "conflict",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=409,
            detail=detail,
            type=type,
            title="Conflict",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """Raised for request or payload validation errors."""

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class UnauthorizedException(AppException):
    """Raised when a bearer or admin token is missing or not recognized."""

    def __init__(
        self,
        detail: str,
        type: str = "unauthorized",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=401,
            detail=detail,
            type=type,
            title="Unauthorized",
            instance=instance,
            extra=extra,
        )


# ---------------------------------------------------------------------------
# Tenant registry
# ---------------------------------------------------------------------------


class UnknownTenantError(NotFoundException):
    """Tenant is not registered or has been deactivated.

    Publishing against an unknown tenant is rejected immediately and never
    retried.
    """

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(
            detail=f"Unknown tenant: {tenant_id}",
            type="unknown-tenant",
            extra={"tenant_id": tenant_id},
        )


class TenantConflictError(ConflictException):
    """Tenant identifier is already taken."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(
            detail=f"Tenant {tenant_id} is already registered",
            type="tenant-conflict",
            extra={"tenant_id": tenant_id},
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class UnknownEventTypeError(ValidationException):
    """No payload variant is registered for the event type and version."""

    def __init__(self, event_type: str, schema_version: int | None = None) -> None:
        self.event_type = event_type
        self.schema_version = schema_version
        detail = f"Unknown event type: {event_type}"
        if schema_version is not None:
            detail = f"{detail} (v{schema_version})"
        super().__init__(
            detail=detail,
            type="unknown-event-type",
            extra={"event_type": event_type, "schema_version": schema_version},
        )


class PayloadValidationError(ValidationException):
    """Payload does not match its registered variant."""

    def __init__(self, event_type: str, errors: list[dict[str, Any]]) -> None:
        self.event_type = event_type
        self.errors = errors
        super().__init__(
            detail=f"Invalid payload for {event_type}",
            type="invalid-payload",
            extra={"event_type": event_type, "errors": errors},
        )


# ---------------------------------------------------------------------------
# Durable queue and dead letters
# ---------------------------------------------------------------------------


class LeaseExpiredError(ConflictException):
    """Lease token is stale or unknown; the message may already be redelivered."""

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(
            detail=f"Lease for message {message_id} is expired or unknown",
            type="lease-expired",
            extra={"message_id": message_id},
        )


class DeadLetterNotFoundError(NotFoundException):
    """Dead-letter entry does not exist."""

    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(
            detail=f"Dead-letter entry {entry_id} not found",
            type="dead-letter-not-found",
            extra={"entry_id": entry_id},
        )


class ReplayConflictError(ConflictException):
    """Dead-letter entry was already replayed."""

    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(
            detail=f"Dead-letter entry {entry_id} was already replayed",
            type="replay-conflict",
            extra={"entry_id": entry_id},
        )


# ---------------------------------------------------------------------------
# Transactional store
# ---------------------------------------------------------------------------


class OptimisticConcurrencyError(ConflictException):
    """Expected version does not match the stored version."""

    def __init__(
        self,
        namespace: str,
        entity_id: str,
        expected: int | None,
        actual: int | None,
    ) -> None:
        self.namespace = namespace
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            detail=(
                f"Version conflict on {namespace}/{entity_id}: "
                f"expected {expected}, found {actual}"
            ),
            type="version-conflict",
            extra={
                "namespace": namespace,
                "entity_id": entity_id,
                "expected_version": expected,
                "actual_version": actual,
            },
        )


class TaskNotFoundError(NotFoundException):
    """Task has not been applied to the tenant's store (yet)."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(
            detail=f"Task {task_id} not found",
            type="task-not-found",
            extra={"task_id": task_id},
        )


# ---------------------------------------------------------------------------
# Handler signals
# ---------------------------------------------------------------------------


class HandlerError(Exception):
    """Base class for failures raised inside event handlers."""


class RetryableError(HandlerError):
    """Transient failure; the hub retries with backoff."""


class FatalError(HandlerError):
    """Permanent failure; the hub dead-letters without retrying."""


__all__ = [
    "AppException",
    "ConflictException",
    "DeadLetterNotFoundError",
    "FatalError",
    "HandlerError",
    "LeaseExpiredError",
    "NotFoundException",
    "OptimisticConcurrencyError",
    "PayloadValidationError",
    "ReplayConflictError",
    "RetryableError",
    "TaskNotFoundError",
    "TenantConflictError",
    "UnauthorizedException",
    "UnknownEventTypeError",
    "UnknownTenantError",
    "ValidationException",
]
