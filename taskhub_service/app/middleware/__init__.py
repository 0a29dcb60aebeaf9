"""Middleware configuration.

Order (outermost first):
- Correlation ID: must wrap everything so all logs carry the id
- Metrics: times the request including exception handling
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .correlation_id import CorrelationIDMiddleware
from .metrics import MetricsMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI


def configure_middleware(app: FastAPI) -> None:
    # add_middleware prepends, so the last one added runs first
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CorrelationIDMiddleware)


__all__ = ["CorrelationIDMiddleware", "MetricsMiddleware", "configure_middleware"]
