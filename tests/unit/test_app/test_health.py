"""Unit tests for the health probes and the metrics endpoint."""

from __future__ import annotations

import pytest

from taskhub_service.infra.metrics.prometheus import REGISTRY


@pytest.mark.unit
class TestHealth:
    async def test_liveness(self, client):
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    async def test_not_ready_before_startup(self, client):
        response = await client.get("/api/v1/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"started": False, "event_log": True}

    async def test_ready_after_startup(self, client, container):
        await container.startup(start_consumers=False)

        response = await client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True

    async def test_startup_without_consumers_still_sweeps_leases(self, container):
        await container.startup(start_consumers=False)

        assert container.sweeper.is_running is True
        assert not any(c.is_running for c in container.consumers.consumers)

        await container.shutdown()
        assert container.sweeper.is_running is False


@pytest.mark.unit
class TestMetrics:
    async def test_scrape(self, client):
        await client.get("/api/v1/health/live")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "http_requests_total" in response.text
        assert "taskhub_dead_letters_total" in response.text

    async def test_requests_labelled_by_route_template(self, client, auth_headers, tenant):
        labels = {"method": "GET", "endpoint": "/api/v1/tasks/{task_id}", "status": "404"}
        before = REGISTRY.get_sample_value("http_requests_total", labels) or 0.0

        await client.get("/api/v1/tasks/does-not-exist", headers=auth_headers)

        assert REGISTRY.get_sample_value("http_requests_total", labels) == before + 1
