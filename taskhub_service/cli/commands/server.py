"""Server management commands."""

import click

from taskhub_service.cli.utils import info
from taskhub_service.core.settings import get_app_settings


@click.group(name="server")
def server() -> None:
    """Server management commands."""


@server.command()
@click.option("--host", default=None, help="Host to bind (default: from settings)")
@click.option("--port", default=None, type=int, help="Port to bind (default: from settings)")
@click.option("--reload/--no-reload", default=False, help="Enable auto-reload on code changes")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["critical", "error", "warning", "info", "debug"]),
)
def run(host: str | None, port: int | None, reload: bool, log_level: str) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_app_settings()
    host = host or settings.host
    port = port or settings.port

    info(f"Server will run at: http://{host}:{port}")
    info(f"Environment: {settings.environment}")

    uvicorn.run(
        "taskhub_service.app.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )
