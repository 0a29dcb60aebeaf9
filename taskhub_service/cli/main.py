"""Main CLI entry point for taskhub-service administration."""

import click

from taskhub_service.cli.commands import dlq, server, status, tenants
from taskhub_service.core.settings import get_app_settings
from taskhub_service.infra.logging.config import setup_logging


def _default_url() -> str:
    settings = get_app_settings()
    host = "localhost" if settings.host in {"0.0.0.0", "::"} else settings.host  # noqa: S104
    return f"http://{host}:{settings.port}"


@click.group()
@click.version_option(version="0.1.0", prog_name="taskhub")
@click.option("--url", envvar="TASKHUB_URL", default=None, help="Base URL of the running service")
@click.option(
    "--admin-token",
    envvar="TASKHUB_ADMIN_TOKEN",
    default=None,
    help="Admin token (default: APP_ADMIN_TOKEN)",
)
@click.pass_context
def cli(ctx: click.Context, url: str | None, admin_token: str | None) -> None:
    """Taskhub CLI - administration for the task event pipeline.

    \b
    Command Groups:
      tenants    Onboard, offboard and list tenants
      dlq        Inspect and replay dead letters
      server     Run the API server

    \b
    Quick Start:
      taskhub server run
      taskhub tenants onboard T1 --token t1-secret-token
      taskhub dlq list --tenant T1
      taskhub dlq replay <entry-id>
      taskhub status
    """
    ctx.ensure_object(dict)
    settings = get_app_settings()
    ctx.obj["url"] = url or ctx.obj.get("url") or _default_url()
    ctx.obj["admin_token"] = (
        admin_token or ctx.obj.get("admin_token") or settings.admin_token.get_secret_value()
    )
    ctx.obj.setdefault("api_prefix", settings.api_prefix)


cli.add_command(tenants.tenants)
cli.add_command(dlq.dlq)
cli.add_command(server.server)
cli.add_command(status.status)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
