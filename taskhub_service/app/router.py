"""Router registry and setup."""

from __future__ import annotations

from typing import TYPE_CHECKING

from taskhub_service.features.admin.router import router as admin_router
from taskhub_service.features.health.router import router as health_router
from taskhub_service.features.metrics.router import router as metrics_router
from taskhub_service.features.tasks.router import router as tasks_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from taskhub_service.core.settings.app import AppSettings


def setup_routers(app: FastAPI, app_settings: AppSettings) -> None:
    """Register all feature routers with the application."""
    api_prefix = app_settings.api_prefix

    # Scrape endpoint stays at /metrics
    app.include_router(metrics_router)

    app.include_router(health_router, prefix=api_prefix)
    app.include_router(tasks_router, prefix=api_prefix)
    app.include_router(admin_router, prefix=api_prefix)


__all__ = ["setup_routers"]
