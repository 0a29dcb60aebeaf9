"""Unit tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from taskhub_service.core.exceptions import (
    AppException,
    ConflictException,
    FatalError,
    HandlerError,
    LeaseExpiredError,
    NotFoundException,
    OptimisticConcurrencyError,
    PayloadValidationError,
    ReplayConflictError,
    RetryableError,
    TenantConflictError,
    UnknownEventTypeError,
    UnknownTenantError,
)


@pytest.mark.unit
class TestAppException:
    def test_default_title_from_status(self):
        exc = AppException(status_code=404, detail="missing")

        assert exc.title == "Not Found"
        assert exc.type == "about:blank"
        assert exc.extra == {}
        assert str(exc) == "missing"

    def test_unknown_status_gets_generic_title(self):
        assert AppException(status_code=418, detail="teapot").title == "Error"


@pytest.mark.unit
class TestDomainExceptions:
    """Domain errors map onto the HTTP problem types."""

    @pytest.mark.parametrize(
        ("exc", "status_code", "problem_type"),
        [
            (UnknownTenantError("T9"), 404, "unknown-tenant"),
            (TenantConflictError("T1"), 409, "tenant-conflict"),
            (LeaseExpiredError("m-1"), 409, "lease-expired"),
            (ReplayConflictError("e-1"), 409, "replay-conflict"),
            (UnknownEventTypeError("TaskCreated", 9), 422, "unknown-event-type"),
            (PayloadValidationError("TaskCreated", []), 422, "invalid-payload"),
        ],
    )
    def test_status_and_type(self, exc, status_code, problem_type):
        assert exc.status_code == status_code
        assert exc.type == problem_type

    def test_unknown_tenant_is_not_found(self):
        exc = UnknownTenantError("T9")

        assert isinstance(exc, NotFoundException)
        assert exc.tenant_id == "T9"
        assert exc.extra == {"tenant_id": "T9"}

    def test_version_conflict_carries_both_versions(self):
        exc = OptimisticConcurrencyError("ns-1", "42", expected=1, actual=2)

        assert isinstance(exc, ConflictException)
        assert exc.extra["expected_version"] == 1
        assert exc.extra["actual_version"] == 2
        assert "expected 1, found 2" in exc.detail

    def test_unknown_event_type_mentions_version(self):
        assert "(v3)" in UnknownEventTypeError("TaskCreated", 3).detail


@pytest.mark.unit
class TestHandlerSignals:
    def test_signals_are_not_http_errors(self):
        assert issubclass(RetryableError, HandlerError)
        assert issubclass(FatalError, HandlerError)
        assert not issubclass(RetryableError, AppException)
