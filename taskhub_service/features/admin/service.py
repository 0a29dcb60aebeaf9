"""Administrative operations: tenant lifecycle and dead-letter replay.

Replay is always operator-initiated. An entry flips to ``replayed`` before
its event or message is resubmitted, so two concurrent replays of one entry
cannot both go through; a resubmission that fails puts the entry back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from taskhub_service.core.events.base import Event
from taskhub_service.core.exceptions import ConflictException, UnknownTenantError
from taskhub_service.core.tenants import TenantNamespaces
from taskhub_service.infra.messaging.dlq.store import DeadLetterKind, DeadLetterStatus
from taskhub_service.infra.metrics.prometheus import dead_letter_replays_total

from .schemas import (
    DeadLetterListResponse,
    DeadLetterResponse,
    PipelineStatusResponse,
    ReplayResponse,
    TenantListResponse,
    TenantOnboard,
    TenantResponse,
)

if TYPE_CHECKING:
    from taskhub_service.core.settings.app import AppSettings
    from taskhub_service.core.tenants import TenantRegistry
    from taskhub_service.infra.auth import StaticTokenAuthorizer
    from taskhub_service.infra.events.log import EventLog
    from taskhub_service.infra.messaging.dlq.store import DeadLetterStore
    from taskhub_service.infra.messaging.hub import EventHub
    from taskhub_service.infra.queue import DurableQueue

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        settings: AppSettings,
        tenants: TenantRegistry,
        dead_letters: DeadLetterStore,
        hub: EventHub,
        queue: DurableQueue,
        event_log: EventLog,
        authorizer: StaticTokenAuthorizer | None = None,
    ) -> None:
        self.settings = settings
        self.tenants = tenants
        self.dead_letters = dead_letters
        self.hub = hub
        self.queue = queue
        self.event_log = event_log
        self.authorizer = authorizer

    # ──────────────────────────────────────────────────────────────
    # Tenants
    # ──────────────────────────────────────────────────────────────

    def onboard(self, request: TenantOnboard) -> TenantResponse:
        """Register a tenant with its namespace pair.

        Raises:
            TenantConflictError: The id is or was in use.
        """
        namespaces = TenantNamespaces(
            data_namespace=request.data_namespace
            or self.settings.data_namespace_template.format(tenant_id=request.tenant_id),
            storage_namespace=request.storage_namespace
            or self.settings.storage_namespace_template.format(tenant_id=request.tenant_id),
        )
        self.tenants.register(request.tenant_id, namespaces)
        if request.token and self.authorizer is not None:
            self.authorizer.add_token(request.token, request.tenant_id)

        logger.info("Tenant onboarded", extra={"tenant_id": request.tenant_id})
        return self._tenant_response(request.tenant_id)

    def offboard(self, tenant_id: str) -> TenantResponse:
        """Deactivate a tenant; its id is never reused.

        Raises:
            UnknownTenantError: Unknown or already deactivated.
        """
        self.tenants.deactivate(tenant_id)
        logger.info("Tenant offboarded", extra={"tenant_id": tenant_id})
        return self._tenant_response(tenant_id)

    def list_tenants(self, *, include_inactive: bool = False) -> TenantListResponse:
        items = [
            TenantResponse.from_tenant(t)
            for t in self.tenants.list_tenants(include_inactive=include_inactive)
        ]
        return TenantListResponse(items=items, total=len(items))

    def _tenant_response(self, tenant_id: str) -> TenantResponse:
        tenant = self.tenants.get(tenant_id)
        if tenant is None:
            raise UnknownTenantError(tenant_id)
        return TenantResponse.from_tenant(tenant)

    # ──────────────────────────────────────────────────────────────
    # Dead letters
    # ──────────────────────────────────────────────────────────────

    def list_dead_letters(
        self,
        *,
        tenant_id: str | None = None,
        kind: DeadLetterKind | None = None,
        status: DeadLetterStatus | None = None,
        source: str | None = None,
    ) -> DeadLetterListResponse:
        entries = self.dead_letters.list_entries(
            tenant_id=tenant_id,
            kind=kind,
            status=status,
            source=source,
        )
        items = [DeadLetterResponse.from_entry(e) for e in entries]
        return DeadLetterListResponse(items=items, total=len(items))

    def get_dead_letter(self, entry_id: str) -> DeadLetterResponse:
        return DeadLetterResponse.from_entry(self.dead_letters.get(entry_id))

    async def replay(self, entry_id: str) -> ReplayResponse:
        """Resubmit a dead-lettered event delivery or queue message.

        Events go back to the handler that gave up on them as a fresh
        delivery. Messages are enqueued again on their ordering key with a
        reset attempt count.

        Raises:
            DeadLetterNotFoundError: Unknown entry.
            ReplayConflictError: Already replayed.
            ConflictException: The original handler is no longer registered.
        """
        entry = self.dead_letters.mark_replayed(entry_id)

        if entry.kind is DeadLetterKind.EVENT:
            event = Event.model_validate(entry.body)
            try:
                self.hub.redeliver(event, entry.source)
            except KeyError:
                self.dead_letters.revert_replay(entry_id)
                raise ConflictException(
                    detail=f"Handler '{entry.source}' is no longer registered",
                    type="handler-not-registered",
                    extra={"entry_id": entry_id},
                ) from None
            response = ReplayResponse(
                entry_id=entry_id,
                kind=entry.kind.value,
                event_id=event.event_id,
                handler_id=entry.source,
            )
        else:
            try:
                message_id = await self.queue.enqueue(entry.source, dict(entry.body["payload"]))
            except (KeyError, ValueError):
                self.dead_letters.revert_replay(entry_id)
                raise
            response = ReplayResponse(entry_id=entry_id, kind=entry.kind.value, message_id=message_id)

        dead_letter_replays_total.labels(kind=entry.kind.value).inc()
        logger.info(
            "Dead letter replayed",
            extra={"entry_id": entry_id, "kind": entry.kind.value, "source": entry.source},
        )
        return response

    # ──────────────────────────────────────────────────────────────
    # Status
    # ──────────────────────────────────────────────────────────────

    async def pipeline_status(self) -> PipelineStatusResponse:
        stats = await self.queue.stats()
        return PipelineStatusResponse(
            tenants_active=len(self.tenants.list_tenants()),
            events_recorded=await self.event_log.count(),
            deliveries_in_flight=self.hub.in_flight_count,
            subscriptions={p: list(h) for p, h in self.hub.subscriptions.snapshot().items()},
            subscription_version=self.hub.subscriptions.version,
            queue_pending=stats.pending,
            queue_in_flight=stats.in_flight,
            dead_letters_pending=self.dead_letters.count(status=DeadLetterStatus.PENDING),
        )


__all__ = ["AdminService"]
