"""Queue message, lease and receipt models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def make_ordering_key(tenant_id: str, entity_id: str) -> str:
    """``<tenant_id>:<entity_id>``, the unit of in-order single-consumer delivery."""
    return f"{tenant_id}:{entity_id}"


class QueueMessage(BaseModel):
    """Snapshot of a queued message.

    Attributes:
        message_id: Queue-assigned identifier.
        ordering_key: ``<tenant_id>:<entity_id>``.
        payload: Message body.
        delivery_attempts: Deliveries so far, the current one included.
        lease_expires_at: Expiry of the current lease, if leased.
        enqueued_at: When the message was accepted.
        dedup_id: Producer-supplied id used to drop repeated enqueues.
    """

    message_id: str
    ordering_key: str
    payload: dict[str, Any]
    delivery_attempts: int = 0
    lease_expires_at: datetime | None = None
    enqueued_at: datetime
    dedup_id: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def tenant_id(self) -> str:
        return self.ordering_key.split(":", 1)[0]

    @property
    def entity_id(self) -> str:
        return self.ordering_key.split(":", 1)[-1]


class Lease(BaseModel):
    """Exclusive, time-bounded claim on a message."""

    message: QueueMessage
    lease_token: str
    consumer_id: str
    expires_at: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def message_id(self) -> str:
        return self.message.message_id


class DeliveryReceipt(BaseModel):
    """Acknowledgment that a message was applied; the message is gone."""

    message_id: str
    ordering_key: str
    consumer_id: str
    delivery_attempts: int
    acked_at: datetime

    model_config = ConfigDict(frozen=True)


class QueueStats(BaseModel):
    pending: int = Field(description="Messages held (visible or leased)")
    in_flight: int = Field(description="Messages under an unexpired lease")
    ordering_keys: int
    enqueued_total: int
    acked_total: int
    dead_lettered_total: int
    lease_expirations_total: int
    dedup_ids: int = Field(default=0, description="Dedup ids currently remembered")


__all__ = [
    "DeliveryReceipt",
    "Lease",
    "QueueMessage",
    "QueueStats",
    "make_ordering_key",
]
