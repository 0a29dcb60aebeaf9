"""FastAPI application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI

from taskhub_service.core.settings import get_settings

from .container import ServiceContainer, build_container
from .exception_handlers import configure_exception_handlers
from .lifespan import lifespan
from .middleware import configure_middleware
from .router import setup_routers

if TYPE_CHECKING:
    from taskhub_service.core.settings import Settings


def create_app(
    settings: Settings | None = None,
    *,
    container: ServiceContainer | None = None,
    start_consumers: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Defaults to the cached unified settings.
        container: Prebuilt container (tests share it with the app).
        start_consumers: Run the queue consumer loops from the lifespan.

    Returns:
        Configured FastAPI application instance.
    """
    if container is None:
        container = build_container(settings or get_settings())
    settings = container.settings
    app_settings = settings.app

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        debug=app_settings.debug,
        openapi_url=f"{app_settings.api_prefix}/openapi.json",
        docs_url=None if app_settings.is_production else f"{app_settings.api_prefix}/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.start_consumers = start_consumers

    # Exception handlers before middleware
    configure_exception_handlers(app)
    configure_middleware(app)
    setup_routers(app, app_settings)

    return app


__all__ = ["create_app"]
