"""Global exception handlers rendering RFC 7807 problem details."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from taskhub_service.core.exceptions import AppException
from taskhub_service.core.schemas import FieldError, ProblemDetails, ValidationProblemDetails

logger = logging.getLogger(__name__)

PROBLEM_JSON = "application/problem+json"


def _get_correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


def _create_problem_detail(
    status_code: int,
    detail: str,
    type_: str = "about:blank",
    title: str | None = None,
    instance: str | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    problem = ProblemDetails(
        type=type_,
        title=title or AppException._default_title(status_code),
        status=status_code,
        detail=detail,
        instance=instance,
    )
    response_data = problem.model_dump(exclude_none=True)
    if extra:
        response_data.update(extra)
    return response_data


def _field_errors(errors: list[Any]) -> list[FieldError]:
    return [
        FieldError(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            type=error["type"],
            value=error.get("input"),
        )
        for error in errors
    ]


def _validation_response(
    request: Request,
    errors: list[FieldError],
    detail: str,
) -> JSONResponse:
    problem = ValidationProblemDetails(
        type="validation-error",
        title="Validation Error",
        status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=detail,
        instance=request.url.path,
        errors=errors,
    )
    response_data = problem.model_dump(mode="json", exclude_none=True)
    correlation_id = _get_correlation_id(request)
    if correlation_id:
        response_data["correlation_id"] = correlation_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=response_data,
        media_type=PROBLEM_JSON,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Convert ``AppException`` into a problem details response."""
    correlation_id = _get_correlation_id(request)

    logger.warning(
        "Application exception occurred",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": exc.type,
            "status_code": exc.status_code,
            "detail": exc.detail,
        },
    )

    problem_data = _create_problem_detail(
        status_code=exc.status_code,
        detail=exc.detail,
        type_=exc.type,
        title=exc.title,
        instance=exc.instance or request.url.path,
        extra=exc.extra,
    )
    if correlation_id:
        problem_data["correlation_id"] = correlation_id

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=problem_data,
        headers=headers,
        media_type=PROBLEM_JSON,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = _field_errors(list(exc.errors()))
    logger.warning(
        "Request validation failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": len(errors),
        },
    )
    return _validation_response(
        request,
        errors,
        f"Request validation failed for {len(errors)} field(s)",
    )


async def pydantic_validation_exception_handler(
    request: Request, exc: PydanticValidationError
) -> JSONResponse:
    """Pydantic errors raised outside request parsing, e.g. while building responses."""
    errors = _field_errors(list(exc.errors()))
    logger.warning(
        "Pydantic validation failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": len(errors),
        },
    )
    return _validation_response(
        request,
        errors,
        f"Data validation failed for {len(errors)} field(s)",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback and return a generic 500 without internal details."""
    logger.error(
        "Unexpected exception occurred",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
        },
        exc_info=exc,
    )

    problem_data = _create_problem_detail(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred while processing your request",
        type_="internal-error",
        title="Internal Server Error",
        instance=request.url.path,
    )
    correlation_id = _get_correlation_id(request)
    if correlation_id:
        problem_data["correlation_id"] = correlation_id

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=problem_data,
        media_type=PROBLEM_JSON,
    )


def configure_exception_handlers(app: FastAPI) -> None:
    """Register all handlers converting exceptions into problem details."""
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PydanticValidationError, pydantic_validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = ["configure_exception_handlers"]
