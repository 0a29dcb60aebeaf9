"""Unified settings composition.

Composes all domain settings into a single object so the application
container can be built from one value:

    from taskhub_service.core.settings import get_settings

    settings = get_settings()
    print(settings.queue.lease_seconds)
    print(settings.dlq.max_attempts)

Each nested settings class still loads from its own environment prefix
(APP_, LOG_, HUB_, DLQ_, QUEUE_, DB_, ALERT_).
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from taskhub_service.infra.messaging.dlq.config import DLQConfig

    from .alerts import AlertSettings
    from .app import AppSettings
    from .database import DatabaseSettings
    from .hub import HubSettings
    from .logs import LoggingSettings
    from .queue import QueueSettings


def _get_app_settings() -> AppSettings:
    """Lazy import to avoid circular dependencies."""
    from .app import AppSettings
    return AppSettings()


def _get_logging_settings() -> LoggingSettings:
    """Lazy import to avoid circular dependencies."""
    from .logs import LoggingSettings
    return LoggingSettings()


def _get_hub_settings() -> HubSettings:
    """Lazy import to avoid circular dependencies."""
    from .hub import HubSettings
    return HubSettings()


def _get_dlq_settings() -> DLQConfig:
    """Lazy import to avoid circular dependencies."""
    from taskhub_service.infra.messaging.dlq.config import DLQConfig
    return DLQConfig()


def _get_queue_settings() -> QueueSettings:
    """Lazy import to avoid circular dependencies."""
    from .queue import QueueSettings
    return QueueSettings()


def _get_db_settings() -> DatabaseSettings:
    """Lazy import to avoid circular dependencies."""
    from .database import DatabaseSettings
    return DatabaseSettings()


def _get_alert_settings() -> AlertSettings:
    """Lazy import to avoid circular dependencies."""
    from .alerts import AlertSettings
    return AlertSettings()


class Settings(BaseSettings):
    """Unified settings composing all domain settings.

    Example:
        settings = Settings(queue=QueueSettings(lease_seconds=1))
        assert settings.queue.lease_seconds == 1
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=_get_app_settings)
    logging: LoggingSettings = Field(default_factory=_get_logging_settings)
    hub: HubSettings = Field(default_factory=_get_hub_settings)
    dlq: DLQConfig = Field(default_factory=_get_dlq_settings)
    queue: QueueSettings = Field(default_factory=_get_queue_settings)
    db: DatabaseSettings = Field(default_factory=_get_db_settings)
    alerts: AlertSettings = Field(default_factory=_get_alert_settings)


def _rebuild_model() -> None:
    """Rebuild the Settings model with the real nested types.

    The nested classes are only imported under TYPE_CHECKING above, so the
    forward references must be resolved before the first instantiation.
    """
    from taskhub_service.infra.messaging.dlq.config import DLQConfig

    from .alerts import AlertSettings
    from .app import AppSettings
    from .database import DatabaseSettings
    from .hub import HubSettings
    from .logs import LoggingSettings
    from .queue import QueueSettings

    Settings.model_rebuild(
        _types_namespace={
            "AppSettings": AppSettings,
            "LoggingSettings": LoggingSettings,
            "HubSettings": HubSettings,
            "DLQConfig": DLQConfig,
            "QueueSettings": QueueSettings,
            "DatabaseSettings": DatabaseSettings,
            "AlertSettings": AlertSettings,
        }
    )


_rebuild_model()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the unified settings instance (cached)."""
    return Settings()


__all__ = ["Settings", "get_settings"]
