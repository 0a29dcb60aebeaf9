"""Access to the service container attached to the application."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from taskhub_service.app.container import ServiceContainer
from taskhub_service.features.admin.service import AdminService
from taskhub_service.features.tasks.service import TaskService


def get_container(request: Request) -> ServiceContainer:
    """Return the container built by the application factory."""
    return request.app.state.container


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]


def get_task_service(container: ContainerDep) -> TaskService:
    return container.tasks


def get_admin_service(container: ContainerDep) -> AdminService:
    return container.admin


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]

__all__ = [
    "AdminServiceDep",
    "ContainerDep",
    "TaskServiceDep",
    "get_admin_service",
    "get_container",
    "get_task_service",
]
