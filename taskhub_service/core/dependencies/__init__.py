"""FastAPI dependencies shared by the feature routers."""

from __future__ import annotations

from .auth import AdminDep, TenantDep, get_current_tenant, require_admin
from .container import AdminServiceDep, ContainerDep, TaskServiceDep, get_container

__all__ = [
    "AdminDep",
    "AdminServiceDep",
    "ContainerDep",
    "TaskServiceDep",
    "TenantDep",
    "get_container",
    "get_current_tenant",
    "require_admin",
]
