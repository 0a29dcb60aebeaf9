"""Correlation ID middleware.

Reads ``X-Correlation-ID`` (or generates a UUID v7), stores it in
``request.state.correlation_id`` for the routes, which stamp it on the events
they publish, adds it to the logging context for the duration of the request
and echoes it on the response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.datastructures import MutableHeaders

from taskhub_service.core.events.base import generate_event_id
from taskhub_service.infra.logging.context import log_context

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIDMiddleware:
    """Pure ASGI middleware propagating the correlation id."""

    header_name = "x-correlation-id"
    state_key = "correlation_id"

    def __init__(self, app: ASGIApp, header_name: str = "x-correlation-id") -> None:
        self.app = app
        self.header_name = header_name.lower()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        value = self._extract_or_generate(scope)
        scope.setdefault("state", {})[self.state_key] = value

        async def send_with_header(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).append(self.header_name, value)
            await send(message)

        with log_context(correlation_id=value):
            await self.app(scope, receive, send_with_header)

    def _extract_or_generate(self, scope: Scope) -> str:
        headers = dict(scope.get("headers", []))
        header_bytes = headers.get(self.header_name.encode("latin-1"))
        if header_bytes:
            value = header_bytes.decode("latin-1").strip()
            if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
                return value
            logger.debug("Ignoring malformed correlation id header")
        return generate_event_id()
