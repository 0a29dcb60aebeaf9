"""Tenant-scoped domain events.

Envelope (``Event``), typed payload variants keyed by type and schema version
(``payload_registry``), and the ``EventPublisher`` that hands events to the
hub.
"""

from taskhub_service.core.events.base import Event, EventPayload, generate_event_id
from taskhub_service.core.events.payloads import (
    AttachmentUploaded,
    FileStored,
    TaskCreated,
    TaskUpdated,
)
from taskhub_service.core.events.publisher import EventPublisher, EventSink
from taskhub_service.core.events.registry import PayloadRegistry, payload_registry

__all__ = [
    "AttachmentUploaded",
    "Event",
    "EventPayload",
    "EventPublisher",
    "EventSink",
    "FileStored",
    "PayloadRegistry",
    "TaskCreated",
    "TaskUpdated",
    "generate_event_id",
    "payload_registry",
]
