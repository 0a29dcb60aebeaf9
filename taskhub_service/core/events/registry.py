"""Payload variant registry.

Maps ``(event_type, schema_version)`` to the ``EventPayload`` subclass that
validates it. Event types without a registered variant are still accepted and
travel with their payload untouched.

Usage:
    from taskhub_service.core.events import payload_registry

    @payload_registry.register
    class TaskArchived(EventPayload):
        event_type: ClassVar[str] = "TaskArchived"
        task_id: str

    payload, version = payload_registry.validate("TaskArchived", {"taskId": 7})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import ValidationError

from taskhub_service.core.exceptions import PayloadValidationError, UnknownEventTypeError

if TYPE_CHECKING:
    from .base import Event, EventPayload

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="EventPayload")


class PayloadRegistry:
    """Versioned registry of payload variants.

    Registration happens at import time; lookups are read-only afterwards.
    """

    def __init__(self) -> None:
        self._variants: dict[str, dict[int, type[EventPayload]]] = {}
        self._latest: dict[str, int] = {}

    def register(self, payload_class: type[T]) -> type[T]:
        """Register a payload variant. Usable as a class decorator.

        Raises:
            ValueError: If another class already holds this type and version.
        """
        event_type = payload_class.event_type
        version = payload_class.schema_version
        versions = self._variants.setdefault(event_type, {})

        existing = versions.get(version)
        if existing is not None and existing is not payload_class:
            msg = (
                f"Event type '{event_type}' version {version} "
                f"already registered with {existing.__name__}"
            )
            raise ValueError(msg)

        versions[version] = payload_class
        if version > self._latest.get(event_type, 0):
            self._latest[event_type] = version

        logger.debug(
            "Registered payload variant",
            extra={"event_type": event_type, "version": version, "class": payload_class.__name__},
        )
        return payload_class

    def is_registered(self, event_type: str) -> bool:
        return event_type in self._variants

    def latest_version(self, event_type: str) -> int | None:
        return self._latest.get(event_type)

    def get(self, event_type: str, version: int | None = None) -> type[EventPayload] | None:
        """Get a variant by type and optional version (latest when omitted)."""
        versions = self._variants.get(event_type)
        if not versions:
            return None
        if version is None:
            version = self._latest[event_type]
        return versions.get(version)

    def validate(
        self,
        event_type: str,
        payload: dict[str, Any],
        schema_version: int | None = None,
    ) -> tuple[dict[str, Any], int]:
        """Validate and normalize ``payload`` for ``event_type``.

        Returns:
            The normalized payload mapping and the schema version it matched.
            Unregistered types return the payload unchanged with version 1
            (or the requested version).

        Raises:
            UnknownEventTypeError: The type is registered but not at this version.
            PayloadValidationError: The payload does not fit the variant.
        """
        if not self.is_registered(event_type):
            return dict(payload), schema_version or 1

        variant = self.get(event_type, schema_version)
        if variant is None:
            raise UnknownEventTypeError(event_type, schema_version)

        try:
            model = variant.model_validate(payload)
        except ValidationError as exc:
            errors = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in exc.errors()
            ]
            raise PayloadValidationError(event_type, errors) from exc

        return model.to_payload(), variant.schema_version

    def parse(self, event: Event) -> EventPayload | None:
        """Typed view of an event's payload, or None for unregistered types."""
        variant = self.get(event.event_type, event.schema_version)
        if variant is None:
            return None
        return variant.model_validate(event.payload)

    def event_types(self) -> list[str]:
        return sorted(self._variants)

    def clear(self) -> None:
        """Remove every registration (tests only)."""
        self._variants.clear()
        self._latest.clear()


payload_registry = PayloadRegistry()

__all__ = ["PayloadRegistry", "payload_registry"]
