"""HTTP client for the administrative API used by the CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn

import click
import httpx

from taskhub_service.cli.utils import error

if TYPE_CHECKING:
    from types import TracebackType

DEFAULT_TIMEOUT = 10.0


class AdminApiError(Exception):
    """Non-2xx answer from the admin API, carrying its problem details."""

    def __init__(self, status_code: int, problem: dict[str, Any]) -> None:
        self.status_code = status_code
        self.problem = problem
        detail = problem.get("detail") or problem.get("title") or "request failed"
        super().__init__(f"{status_code}: {detail}")


class AdminClient:
    """Thin async wrapper over ``/api/v1/admin``.

    Example:
        async with AdminClient("http://localhost:8000", "secret") as client:
            tenants = await client.list_tenants()
    """

    def __init__(
        self,
        base_url: str,
        admin_token: str,
        *,
        api_prefix: str = "/api/v1",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}{api_prefix}/admin",
            headers={"X-Admin-Token": admin_token},
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> AdminClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._client.request(method, path, **kwargs)
        if response.is_error:
            try:
                problem = response.json()
            except ValueError:
                problem = {"detail": response.text}
            raise AdminApiError(response.status_code, problem)
        return response.json()

    async def onboard(
        self,
        tenant_id: str,
        *,
        data_namespace: str | None = None,
        storage_namespace: str | None = None,
        token: str | None = None,
    ) -> dict[str, Any]:
        body = {
            "tenant_id": tenant_id,
            "data_namespace": data_namespace,
            "storage_namespace": storage_namespace,
            "token": token,
        }
        return await self._request(
            "POST",
            "/tenants",
            json={k: v for k, v in body.items() if v is not None},
        )

    async def offboard(self, tenant_id: str) -> dict[str, Any]:
        return await self._request("DELETE", f"/tenants/{tenant_id}")

    async def list_tenants(self, *, include_inactive: bool = False) -> dict[str, Any]:
        return await self._request(
            "GET",
            "/tenants",
            params={"include_inactive": str(include_inactive).lower()},
        )

    async def list_dead_letters(self, **filters: str | None) -> dict[str, Any]:
        params = {k: v for k, v in filters.items() if v is not None}
        return await self._request("GET", "/dead-letters", params=params)

    async def get_dead_letter(self, entry_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/dead-letters/{entry_id}")

    async def replay(self, entry_id: str) -> dict[str, Any]:
        return await self._request("POST", f"/dead-letters/{entry_id}/replay")

    async def status(self) -> dict[str, Any]:
        return await self._request("GET", "/status")


def fail(exc: Exception) -> NoReturn:
    """Report an API or transport failure and exit with status 1."""
    if isinstance(exc, AdminApiError):
        error(f"Admin API returned {exc}")
        problem_type = exc.problem.get("type")
        if problem_type:
            error(f"Problem type: {problem_type}")
    else:
        error(f"Could not reach the admin API: {exc}")
    raise click.exceptions.Exit(1)


def admin_client(ctx: click.Context) -> AdminClient:
    """Build a client from the options stored on the root command context."""
    obj = ctx.find_root().obj or {}
    return AdminClient(
        obj["url"],
        obj["admin_token"],
        api_prefix=obj.get("api_prefix", "/api/v1"),
        transport=obj.get("transport"),
    )


__all__ = ["AdminApiError", "AdminClient", "admin_client", "fail"]
