"""Event publisher.

Turns a domain mutation into an ``Event`` and hands it to the hub. The call
returns only after the hub has durably recorded the event; fan-out to the
handlers happens in the background and handler failures never reach the
caller.

Usage:
    publisher = EventPublisher(tenant_registry, hub)
    event_id = await publisher.publish("T1", "TaskCreated", {"taskId": 42})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from taskhub_service.core.exceptions import UnknownTenantError, ValidationException
from taskhub_service.infra.metrics.prometheus import events_rejected_total

from .base import Event, generate_event_id
from .registry import PayloadRegistry, payload_registry

if TYPE_CHECKING:
    from taskhub_service.core.tenants import TenantRegistry

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Durably records an event and starts its fan-out."""

    async def publish(self, event: Event) -> Any: ...


class EventPublisher:
    """Publishes tenant-scoped events to the hub.

    Attributes:
        correlation_id: Default correlation id attached to every event.
    """

    def __init__(
        self,
        tenants: TenantRegistry,
        sink: EventSink,
        *,
        registry: PayloadRegistry | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self._tenants = tenants
        self._sink = sink
        self._registry = registry or payload_registry
        self.correlation_id = correlation_id

    async def publish(
        self,
        tenant_id: str,
        event_type: str,
        payload: dict[str, Any],
        *,
        event_id: str | None = None,
        schema_version: int | None = None,
        correlation_id: str | None = None,
    ) -> str:
        """Publish an event and return its id.

        Args:
            tenant_id: Tenant the event belongs to; must resolve.
            event_type: Type tag, e.g. ``TaskCreated``.
            payload: Payload mapping; validated when the type is registered.
            event_id: Re-publish under a known id (redelivery). A fresh UUID v7
                is stamped otherwise.
            schema_version: Payload variant version (latest when omitted).
            correlation_id: Overrides the publisher's default correlation id.

        Raises:
            UnknownTenantError: The tenant is unknown or deactivated.
            ValidationException: The payload does not fit its registered variant.
        """
        try:
            self._tenants.resolve(tenant_id)
        except UnknownTenantError:
            events_rejected_total.labels(reason="unknown_tenant").inc()
            logger.warning(
                "Publish rejected for unknown tenant",
                extra={"tenant_id": tenant_id, "event_type": event_type},
            )
            raise

        try:
            normalized, version = self._registry.validate(event_type, payload, schema_version)
        except ValidationException:
            events_rejected_total.labels(reason="invalid_payload").inc()
            raise

        event = Event(
            event_id=event_id or generate_event_id(),
            event_type=event_type,
            tenant_id=tenant_id,
            payload=normalized,
            schema_version=version,
            correlation_id=correlation_id or self.correlation_id,
        )

        await self._sink.publish(event)

        logger.debug("Event published", extra=event.log_extra())
        return event.event_id


__all__ = ["EventPublisher", "EventSink"]
