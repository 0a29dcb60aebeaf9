"""Prometheus metrics endpoint.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Metrics Exposed:
    HTTP: http_requests_total, http_request_duration_seconds
    Events: taskhub_events_published_total, taskhub_events_rejected_total
    Hub: taskhub_hub_dispatches_total, taskhub_hub_retries_total,
        taskhub_hub_deliveries_in_flight, taskhub_handler_duration_seconds
    Queue: taskhub_queue_enqueued_total, taskhub_queue_acked_total,
        taskhub_queue_lease_expirations_total, taskhub_queue_pending_messages
    Dead letters: taskhub_dead_letters_total, taskhub_alerts_sent_total
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from taskhub_service.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose the service registry in Prometheus text format."""
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
