"""Pipeline status command."""

import click
import httpx

from taskhub_service.cli.client import AdminApiError, admin_client, fail
from taskhub_service.cli.utils import coro, header, print_json


@click.command(name="status")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
@coro
async def status(ctx: click.Context, as_json: bool) -> None:
    """Show hub, queue and dead-letter counters."""
    try:
        async with admin_client(ctx) as client:
            result = await client.status()
    except (AdminApiError, httpx.HTTPError) as exc:
        fail(exc)

    if as_json:
        print_json(result)
        return

    header("Pipeline status")
    click.echo(f"  Active tenants:         {result['tenants_active']}")
    click.echo(f"  Events recorded:        {result['events_recorded']}")
    click.echo(f"  Deliveries in flight:   {result['deliveries_in_flight']}")
    click.echo(f"  Queue pending:          {result['queue_pending']}")
    click.echo(f"  Queue in flight:        {result['queue_in_flight']}")
    click.echo(f"  Dead letters pending:   {result['dead_letters_pending']}")
    click.echo(f"  Subscriptions (v{result['subscription_version']}):")
    for pattern, handlers in sorted(result["subscriptions"].items()):
        click.echo(f"    {pattern:<24} -> {', '.join(handlers)}")
