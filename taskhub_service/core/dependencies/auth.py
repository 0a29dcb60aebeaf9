"""Authentication dependencies.

Tenant endpoints take the tenant from the bearer token:

    @router.get("/tasks/{task_id}")
    async def get_task(task_id: str, tenant: TenantDep): ...

Admin endpoints require the ``X-Admin-Token`` header:

    @router.get("/tenants", dependencies=[AdminDep])
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskhub_service.core.exceptions import UnauthorizedException
from taskhub_service.core.tenants import TenantContext
from taskhub_service.infra.auth import check_admin_token
from taskhub_service.infra.logging.context import set_log_context

from .container import ContainerDep

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_tenant(
    request: Request,
    container: ContainerDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> TenantContext:
    """Resolve the calling tenant from ``Authorization: Bearer <token>``.

    Raises:
        UnauthorizedException: Missing or unknown token, or inactive tenant.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException(detail="Missing bearer token", type="missing-token")

    tenant = container.authorizer.authorize(credentials.credentials)
    request.state.tenant_id = tenant.tenant_id
    set_log_context(tenant_id=tenant.tenant_id)
    return tenant


async def require_admin(
    container: ContainerDep,
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    check_admin_token(container.settings.app.admin_token.get_secret_value(), x_admin_token)


TenantDep = Annotated[TenantContext, Depends(get_current_tenant)]
AdminDep = Depends(require_admin)

__all__ = ["AdminDep", "TenantDep", "bearer_scheme", "get_current_tenant", "require_admin"]
