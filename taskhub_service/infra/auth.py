"""Bearer token authorization.

The service only needs one thing from authentication: turn a bearer token
into the tenant the caller acts for. ``Authorizer`` is that seam; the static
implementation maps configured tokens to tenant ids and resolves them through
the tenant registry, so a deactivated tenant's tokens stop working at once.
"""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING, Protocol

from taskhub_service.core.exceptions import UnauthorizedException, UnknownTenantError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from taskhub_service.core.tenants import TenantContext, TenantRegistry

logger = logging.getLogger(__name__)


class Authorizer(Protocol):
    def authorize(self, token: str) -> TenantContext:
        """Raises UnauthorizedException for unknown tokens or inactive tenants."""
        ...


class StaticTokenAuthorizer:
    """Token -> tenant id map backed by the tenant registry."""

    def __init__(self, tokens: Mapping[str, str], tenants: TenantRegistry) -> None:
        self._tokens = dict(tokens)
        self._tenants = tenants

    def add_token(self, token: str, tenant_id: str) -> None:
        self._tokens[token] = tenant_id

    def revoke(self, token: str) -> bool:
        return self._tokens.pop(token, None) is not None

    def authorize(self, token: str) -> TenantContext:
        tenant_id = self._lookup(token)
        if tenant_id is None:
            raise UnauthorizedException(detail="Invalid bearer token", type="invalid-token")
        try:
            return self._tenants.resolve(tenant_id)
        except UnknownTenantError as exc:
            logger.warning("Token maps to an inactive tenant", extra={"tenant_id": tenant_id})
            raise UnauthorizedException(
                detail="Tenant is not active",
                type="inactive-tenant",
            ) from exc

    def _lookup(self, token: str) -> str | None:
        for known, tenant_id in self._tokens.items():
            if hmac.compare_digest(known.encode(), token.encode()):
                return tenant_id
        return None


def check_admin_token(expected: str, provided: str | None) -> None:
    """Raises UnauthorizedException unless ``provided`` equals ``expected``."""
    if not provided or not hmac.compare_digest(expected.encode(), provided.encode()):
        raise UnauthorizedException(detail="Invalid admin token", type="invalid-admin-token")


__all__ = ["Authorizer", "StaticTokenAuthorizer", "check_admin_token"]
