"""Tenant lifecycle commands."""

import click
import httpx

from taskhub_service.cli.client import AdminApiError, admin_client, fail
from taskhub_service.cli.utils import coro, header, info, print_json, success, warning


@click.group(name="tenants")
def tenants() -> None:
    """Onboard, offboard and list tenants."""


@tenants.command()
@click.argument("tenant_id")
@click.option("--data-namespace", default=None, help="Data namespace (default: from template)")
@click.option("--storage-namespace", default=None, help="Storage namespace (default: from template)")
@click.option("--token", default=None, help="Register a bearer token for the tenant")
@click.pass_context
@coro
async def onboard(
    ctx: click.Context,
    tenant_id: str,
    data_namespace: str | None,
    storage_namespace: str | None,
    token: str | None,
) -> None:
    """Register TENANT_ID with its namespace pair."""
    try:
        async with admin_client(ctx) as client:
            tenant = await client.onboard(
                tenant_id,
                data_namespace=data_namespace,
                storage_namespace=storage_namespace,
                token=token,
            )
    except (AdminApiError, httpx.HTTPError) as exc:
        fail(exc)

    success(f"Tenant {tenant['tenant_id']} onboarded")
    info(f"Data namespace:    {tenant['data_namespace']}")
    info(f"Storage namespace: {tenant['storage_namespace']}")


@tenants.command()
@click.argument("tenant_id")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
@coro
async def offboard(ctx: click.Context, tenant_id: str, yes: bool) -> None:
    """Deactivate TENANT_ID. The id can never be registered again."""
    if not yes:
        click.confirm(f"Deactivate tenant {tenant_id}? This cannot be undone", abort=True)

    try:
        async with admin_client(ctx) as client:
            await client.offboard(tenant_id)
    except (AdminApiError, httpx.HTTPError) as exc:
        fail(exc)

    success(f"Tenant {tenant_id} offboarded")


@tenants.command(name="list")
@click.option("--all", "include_inactive", is_flag=True, help="Include deactivated tenants")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
@coro
async def list_tenants(ctx: click.Context, include_inactive: bool, as_json: bool) -> None:
    """List tenants."""
    try:
        async with admin_client(ctx) as client:
            result = await client.list_tenants(include_inactive=include_inactive)
    except (AdminApiError, httpx.HTTPError) as exc:
        fail(exc)

    if as_json:
        print_json(result)
        return

    header(f"Tenants ({result['total']})")
    if not result["items"]:
        warning("No tenants registered")
        return

    for tenant in result["items"]:
        status = tenant["status"]
        colour = "green" if status == "active" else "red"
        click.echo(
            f"  {tenant['tenant_id']:<24} {click.style(status, fg=colour):<20} "
            f"data={tenant['data_namespace']} storage={tenant['storage_namespace']}"
        )
