"""Unit tests for RFC 7807 problem detail rendering."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from taskhub_service.app.exception_handlers import configure_exception_handlers
from taskhub_service.app.middleware import CorrelationIDMiddleware
from taskhub_service.core.exceptions import (
    TaskNotFoundError,
    UnauthorizedException,
    ValidationException,
)


class Strict(BaseModel):
    count: int


def _build_app() -> FastAPI:
    app = FastAPI()
    configure_exception_handlers(app)
    app.add_middleware(CorrelationIDMiddleware)

    @app.get("/missing")
    async def missing():
        raise TaskNotFoundError("42")

    @app.get("/invalid")
    async def invalid():
        raise ValidationException(
            detail="Attachment is empty",
            type="empty-attachment",
            extra={"size_bytes": 0},
        )

    @app.get("/denied")
    async def denied():
        raise UnauthorizedException(detail="Missing bearer token", type="missing-token")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    @app.get("/model")
    async def model():
        return Strict.model_validate({"count": "many"})

    @app.get("/typed/{number}")
    async def typed(number: int):
        return {"number": number}

    return app


@pytest.fixture
async def problem_client():
    transport = ASGITransport(app=_build_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.unit
class TestProblemDetails:
    async def test_app_exception(self, problem_client):
        response = await problem_client.get("/missing", headers={"X-Correlation-ID": "corr-1"})

        assert response.status_code == 404
        assert response.headers["content-type"] == "application/problem+json"
        body = response.json()
        assert body["status"] == 404
        assert body["title"] == "Not Found"
        assert body["instance"] == "/missing"
        assert body["correlation_id"] == "corr-1"
        assert "42" in body["detail"]

    async def test_extra_fields_are_merged(self, problem_client):
        body = (await problem_client.get("/invalid")).json()

        assert body["type"] == "empty-attachment"
        assert body["size_bytes"] == 0

    async def test_unauthorized_sets_www_authenticate(self, problem_client):
        response = await problem_client.get("/denied")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_unexpected_error_hides_details(self, problem_client):
        response = await problem_client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["type"] == "internal-error"
        assert "secret" not in response.text

    async def test_request_validation(self, problem_client):
        response = await problem_client.get("/typed/abc")

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "validation-error"
        assert body["errors"][0]["field"] == "path.number"

    async def test_pydantic_error_outside_request_parsing(self, problem_client):
        response = await problem_client.get("/model")

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "count"


@pytest.mark.unit
class TestCorrelationId:
    async def test_generated_when_missing(self, problem_client):
        response = await problem_client.get("/typed/1")

        assert len(response.headers["x-correlation-id"]) == 36

    async def test_echoed(self, problem_client):
        response = await problem_client.get("/typed/1", headers={"X-Correlation-ID": "abc"})

        assert response.headers["x-correlation-id"] == "abc"

    async def test_oversized_header_replaced(self, problem_client):
        response = await problem_client.get("/typed/1", headers={"X-Correlation-ID": "x" * 500})

        assert response.headers["x-correlation-id"] != "x" * 500
