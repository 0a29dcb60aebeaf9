"""Dead-letter inspection and replay commands.

Replay is manual only: nothing leaves dead-letter storage unless an operator
runs ``taskhub dlq replay``.
"""

import click
import httpx

from taskhub_service.cli.client import AdminApiError, admin_client, fail
from taskhub_service.cli.utils import coro, header, info, print_json, section, success, warning


@click.group(name="dlq")
def dlq() -> None:
    """Inspect and replay dead-lettered events and messages."""


@dlq.command(name="list")
@click.option("--tenant", "tenant_id", default=None, help="Filter by tenant")
@click.option("--kind", type=click.Choice(["event", "message"]), default=None)
@click.option("--status", type=click.Choice(["pending", "replayed"]), default="pending")
@click.option("--source", default=None, help="Handler id or ordering key")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
@coro
async def list_entries(
    ctx: click.Context,
    tenant_id: str | None,
    kind: str | None,
    status: str,
    source: str | None,
    as_json: bool,
) -> None:
    """List dead-letter entries (pending by default)."""
    try:
        async with admin_client(ctx) as client:
            result = await client.list_dead_letters(
                tenant_id=tenant_id,
                kind=kind,
                status=status,
                source=source,
            )
    except (AdminApiError, httpx.HTTPError) as exc:
        fail(exc)

    if as_json:
        print_json(result)
        return

    header(f"Dead letters ({result['total']})")
    if not result["items"]:
        info("Nothing dead-lettered")
        return

    for entry in result["items"]:
        click.echo(f"  {entry['entry_id']}")
        click.echo(f"    {entry['kind']} from {entry['source']} (tenant {entry['tenant_id']})")
        click.echo(f"    reason={entry['reason']} attempts={entry['attempts']}")
        if entry.get("last_error"):
            click.echo(f"    last error: {entry['last_error']}")


@dlq.command()
@click.argument("entry_id")
@click.pass_context
@coro
async def show(ctx: click.Context, entry_id: str) -> None:
    """Show one dead-letter entry including its body."""
    try:
        async with admin_client(ctx) as client:
            entry = await client.get_dead_letter(entry_id)
    except (AdminApiError, httpx.HTTPError) as exc:
        fail(exc)

    section(f"Dead letter {entry_id}")
    print_json(entry)


@dlq.command()
@click.argument("entry_id")
@click.pass_context
@coro
async def replay(ctx: click.Context, entry_id: str) -> None:
    """Resubmit ENTRY_ID to its handler or ordering key."""
    try:
        async with admin_client(ctx) as client:
            result = await client.replay(entry_id)
    except (AdminApiError, httpx.HTTPError) as exc:
        fail(exc)

    if result["kind"] == "event":
        success(f"Event {result['event_id']} redelivered to {result['handler_id']}")
    else:
        success(f"Message re-enqueued as {result['message_id']}")
    warning("Replayed entries stay listed with status 'replayed'")
