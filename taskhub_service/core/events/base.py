"""Event envelope and payload base class.

An ``Event`` is the immutable envelope the hub records and fans out: it names
exactly one tenant, carries a type tag plus schema version, and holds the
payload as a JSON-compatible mapping. Typed payload variants derive from
``EventPayload`` and are looked up through the payload registry.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from uuid_utils import uuid7


def generate_event_id() -> str:
    """Generate a time-sortable UUID v7 string."""
    return str(uuid7())


class EventPayload(BaseModel):
    """Base class for typed payload variants.

    Subclasses set ``event_type`` and ``schema_version``; together they key the
    variant in the payload registry.

    Example:
        class TaskArchived(EventPayload):
            event_type: ClassVar[str] = "TaskArchived"
            schema_version: ClassVar[int] = 1

            task_id: str
    """

    event_type: ClassVar[str] = ""
    schema_version: ClassVar[int] = 1

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if not cls.__dict__.get("event_type"):
            msg = f"{cls.__name__} must define 'event_type' class variable"
            raise TypeError(msg)

    @classmethod
    def qualified_type(cls) -> str:
        """Type with version, e.g. ``TaskCreated:v1``."""
        return f"{cls.event_type}:v{cls.schema_version}"

    def to_payload(self) -> dict[str, Any]:
        """Dump to the JSON-compatible mapping stored on the envelope."""
        return self.model_dump(mode="json")


class Event(BaseModel):
    """Immutable event envelope.

    Attributes:
        event_id: Unique, time-sortable identifier (UUID v7).
        event_type: Type tag used for subscription matching.
        tenant_id: The one tenant this event belongs to.
        payload: JSON-compatible payload mapping.
        schema_version: Version of the payload variant.
        created_at: When the event was published (UTC).
        correlation_id: Optional id linking related events and requests.
    """

    event_id: str = Field(default_factory=generate_event_id, min_length=1)
    event_type: str = Field(min_length=1, max_length=200)
    tenant_id: str = Field(min_length=1, max_length=200)
    payload: dict[str, Any] = Field(default_factory=dict)
    schema_version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    correlation_id: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    def with_correlation(self, correlation_id: str) -> Event:
        """Return a copy carrying ``correlation_id``."""
        return self.model_copy(update={"correlation_id": correlation_id})

    def entity_id(self) -> str | None:
        """The task or storage key the payload refers to, if any."""
        for key in ("task_id", "storage_key"):
            value = self.payload.get(key)
            if value is not None:
                return str(value)
        return None

    def log_extra(self) -> dict[str, Any]:
        """Fields attached to log records about this event."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "tenant_id": self.tenant_id,
        }


__all__ = ["Event", "EventPayload", "generate_event_id"]
