"""Tenant registry and tenant models."""

from .models import Tenant, TenantContext, TenantNamespaces, TenantStatus
from .registry import TenantRegistry

__all__ = [
    "Tenant",
    "TenantContext",
    "TenantNamespaces",
    "TenantRegistry",
    "TenantStatus",
]
