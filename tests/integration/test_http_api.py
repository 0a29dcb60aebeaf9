"""HTTP API end to end: tenant onboarding, task writes and reads, dead-letter replay."""

from __future__ import annotations

import pytest

from taskhub_service.workers.base import EventHandler, HandlerOutcome

TASKS = "/api/v1/tasks"
ADMIN = "/api/v1/admin"


class RejectingHandler(EventHandler):
    handler_id = "rejecting"
    patterns = ("TaskCreated",)

    def __init__(self) -> None:
        self.accept = False

    async def handle(self, event) -> HandlerOutcome:
        return HandlerOutcome.APPLIED if self.accept else HandlerOutcome.FATAL


# ============================================================================
# Auth
# ============================================================================


@pytest.mark.integration
class TestAuth:
    async def test_missing_bearer_token(self, client, tenant):
        response = await client.get(f"{TASKS}/1")

        assert response.status_code == 401
        assert response.json()["type"] == "missing-token"

    async def test_unknown_bearer_token(self, client, tenant):
        response = await client.get(f"{TASKS}/1", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    async def test_admin_token_required(self, client):
        response = await client.get(f"{ADMIN}/tenants")

        assert response.status_code == 401
        assert response.json()["type"] == "invalid-admin-token"


# ============================================================================
# Tasks
# ============================================================================


@pytest.mark.integration
class TestTaskApi:
    async def test_create_then_read(self, client, container, tenant, auth_headers):
        response = await client.post(
            TASKS,
            json={"taskId": "42", "title": "Write docs"},
            headers={**auth_headers, "X-Correlation-ID": "req-42"},
        )

        assert response.status_code == 202
        accepted = response.json()
        assert accepted == {"task_id": "42", "event_id": accepted["event_id"], "status": "accepted"}
        assert (await container.event_log.get(accepted["event_id"])).correlation_id == "req-42"

        await container.settle()
        task = (await client.get(f"{TASKS}/42", headers=auth_headers)).json()

        assert task["title"] == "Write docs"
        assert task["status"] == "open"
        assert task["tenant_id"] == "T1"

    async def test_read_before_apply_is_not_found(self, client, tenant, auth_headers):
        await client.post(TASKS, json={"taskId": "43", "title": "Later"}, headers=auth_headers)

        response = await client.get(f"{TASKS}/43", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["type"] == "task-not-found"

    async def test_patch(self, client, container, tenant, auth_headers):
        await client.post(TASKS, json={"taskId": "42", "title": "Draft"}, headers=auth_headers)
        response = await client.patch(
            f"{TASKS}/42", json={"assignee": "sam"}, headers=auth_headers
        )
        await container.settle()

        assert response.status_code == 202
        task = (await client.get(f"{TASKS}/42", headers=auth_headers)).json()
        assert task["assignee"] == "sam"
        assert task["version"] == 2

    async def test_empty_patch(self, client, tenant, auth_headers):
        response = await client.patch(f"{TASKS}/42", json={}, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["type"] == "empty-update"

    async def test_invalid_body(self, client, tenant, auth_headers):
        response = await client.post(TASKS, json={"title": ""}, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["type"] == "validation-error"

    async def test_upload_attachment(self, client, container, tenant, auth_headers):
        await client.post(TASKS, json={"taskId": "42", "title": "Docs"}, headers=auth_headers)

        response = await client.post(
            f"{TASKS}/42/attachments",
            files={"file": ("notes.txt", b"hello world", "text/plain")},
            headers=auth_headers,
        )
        await container.settle()

        assert response.status_code == 202
        assert response.json()["size_bytes"] == 11
        task = (await client.get(f"{TASKS}/42", headers=auth_headers)).json()
        assert task["attachments"][0]["filename"] == "notes.txt"

    async def test_other_tenant_cannot_read(
        self, client, container, tenant, other_tenant, auth_headers
    ):
        await client.post(TASKS, json={"taskId": "42", "title": "Mine"}, headers=auth_headers)
        await container.settle()

        response = await client.get(
            f"{TASKS}/42", headers={"Authorization": "Bearer t2-bearer-token"}
        )

        assert response.status_code == 404

    async def test_offboarded_tenant_is_rejected(self, client, tenant, auth_headers, admin_headers):
        await client.delete(f"{ADMIN}/tenants/T1", headers=admin_headers)

        response = await client.post(TASKS, json={"title": "Too late"}, headers=auth_headers)

        assert response.status_code == 401
        assert response.json()["type"] == "inactive-tenant"


# ============================================================================
# Admin
# ============================================================================


@pytest.mark.integration
class TestAdminApi:
    async def test_tenant_lifecycle(self, client, admin_headers):
        created = await client.post(
            f"{ADMIN}/tenants",
            json={"tenant_id": "acme", "token": "acme-token-123"},
            headers=admin_headers,
        )
        conflict = await client.post(
            f"{ADMIN}/tenants", json={"tenant_id": "acme"}, headers=admin_headers
        )
        offboarded = await client.delete(f"{ADMIN}/tenants/acme", headers=admin_headers)
        listed = await client.get(
            f"{ADMIN}/tenants", params={"include_inactive": "true"}, headers=admin_headers
        )

        assert created.status_code == 201
        assert conflict.status_code == 409
        assert offboarded.json()["status"] == "deactivated"
        assert listed.json()["total"] == 1

    async def test_invalid_tenant_id(self, client, admin_headers):
        response = await client.post(
            f"{ADMIN}/tenants", json={"tenant_id": "bad id!"}, headers=admin_headers
        )

        assert response.status_code == 422

    async def test_dead_letter_replay(self, client, container, tenant, auth_headers, admin_headers):
        handler = RejectingHandler()
        container.hub.register_handler(handler)
        await client.post(TASKS, json={"taskId": "42", "title": "x"}, headers=auth_headers)
        await container.settle()

        listed = (
            await client.get(
                f"{ADMIN}/dead-letters", params={"kind": "event"}, headers=admin_headers
            )
        ).json()
        [entry] = listed["items"]
        assert entry["source"] == "rejecting"
        assert entry["reason"] == "fatal"

        entry_url = f"{ADMIN}/dead-letters/{entry['entry_id']}"
        detail = await client.get(entry_url, headers=admin_headers)
        assert detail.json()["body"]["event_type"] == "TaskCreated"

        handler.accept = True
        replay_url = f"{entry_url}/replay"
        replayed = await client.post(replay_url, headers=admin_headers)
        again = await client.post(replay_url, headers=admin_headers)
        await container.settle()

        assert replayed.status_code == 202
        assert replayed.json()["handler_id"] == "rejecting"
        assert again.status_code == 409
        pending = (
            await client.get(
                f"{ADMIN}/dead-letters", params={"status": "pending"}, headers=admin_headers
            )
        ).json()
        assert pending["total"] == 0
        assert container.hub.completed[-1].handler_id == "rejecting"

    async def test_unknown_dead_letter(self, client, admin_headers):
        response = await client.get(f"{ADMIN}/dead-letters/missing", headers=admin_headers)

        assert response.status_code == 404

    async def test_status(self, client, container, tenant, auth_headers, admin_headers):
        await client.post(TASKS, json={"taskId": "1", "title": "x"}, headers=auth_headers)
        await container.settle()

        status = (await client.get(f"{ADMIN}/status", headers=admin_headers)).json()

        assert status["tenants_active"] == 1
        assert status["events_recorded"] == 1
        assert status["queue_pending"] == 0
        assert status["dead_letters_pending"] == 0
