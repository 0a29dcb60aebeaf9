"""Health check endpoints.

- Liveness: /health/live - Is the process alive?
- Readiness: /health/ready - Are the consumers running and the event log reachable?
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Response, status
from pydantic import Field

from taskhub_service.core.dependencies import ContainerDep  # noqa: TC001
from taskhub_service.core.schemas import CustomBase

router = APIRouter(prefix="/health", tags=["health"])

logger = logging.getLogger(__name__)


class LivenessResponse(CustomBase):
    status: str = "alive"
    service: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ReadinessResponse(CustomBase):
    ready: bool
    checks: dict[str, bool]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


@router.get("/live", response_model=LivenessResponse, summary="Liveness probe")
async def liveness(container: ContainerDep) -> LivenessResponse:
    return LivenessResponse(service=container.settings.app.service_name)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    responses={503: {"model": ReadinessResponse}},
)
async def readiness(container: ContainerDep, response: Response) -> ReadinessResponse:
    checks = {"started": container.started}
    try:
        await container.event_log.count()
        checks["event_log"] = True
    except Exception:
        logger.exception("Event log health check failed")
        checks["event_log"] = False

    ready = all(checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(ready=ready, checks=checks)
