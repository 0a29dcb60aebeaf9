"""Metrics middleware for HTTP request instrumentation."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware

from taskhub_service.infra.metrics.prometheus import (
    http_request_duration_seconds,
    http_requests_total,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastapi import Request, Response


def route_template(request: Request) -> str:
    """Full route template for the matched route, e.g. ``/api/v1/tasks/{task_id}``.

    Depending on the framework version, the matched route's path either
    carries every include prefix or only the prefixes of its own router. In
    the latter case the missing prefix is the part of the request path in
    front of what the route's pattern matched. Unmatched requests fall back
    to the raw path.
    """
    path = request.url.path
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    regex = getattr(route, "path_regex", None)
    if template is None:
        return path
    if regex is None or regex.match(path):
        return template

    for index, char in enumerate(path):
        if char == "/" and index > 0 and regex.match(path[index:]):
            return path[:index] + template
    return template


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests and time them, labelled by route template."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        start_time = time.perf_counter()
        status_code = 500  # Default to error in case of exception

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time

            # Templates rather than raw paths keep label cardinality low
            endpoint = route_template(request)

            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
