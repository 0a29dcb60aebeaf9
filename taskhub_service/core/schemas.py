"""Base schema classes and RFC 7807 problem details."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CustomBase(BaseModel):
    """Base model with common configuration for all API schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        populate_by_name=True,
        # Silently drop unexpected fields
        extra="ignore",
        str_strip_whitespace=True,
    )


class ProblemDetails(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs.

    See: https://datatracker.ietf.org/doc/html/rfc7807
    """

    type: str = Field(
        default="about:blank",
        min_length=1,
        max_length=200,
        description="URI reference identifying the problem type",
    )
    title: str = Field(min_length=1, max_length=200)
    status: int = Field(ge=100, le=599, description="HTTP status code")
    detail: str | None = Field(default=None, max_length=2000)
    instance: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "unknown-tenant",
                "title": "Not Found",
                "status": 404,
                "detail": "Tenant 'T9' is not registered or has been deactivated",
                "instance": "/api/v1/tasks",
            }
        },
    )


class FieldError(BaseModel):
    field: str
    message: str
    type: str
    value: Any = None


class ValidationProblemDetails(ProblemDetails):
    errors: list[FieldError] = Field(default_factory=list)


__all__ = ["CustomBase", "FieldError", "ProblemDetails", "ValidationProblemDetails"]
