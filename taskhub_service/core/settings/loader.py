"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from taskhub_service.core.settings import get_queue_settings

    settings = get_queue_settings()  # First call: loads and validates
    settings = get_queue_settings()  # Subsequent calls: returns cached instance

Testing:
    Clear the caches to force a reload with ``clear_all_caches()``, or build
    the model directly: ``QueueSettings(lease_seconds=0.5)``.
"""

from __future__ import annotations

from functools import lru_cache

from taskhub_service.infra.messaging.dlq.config import DLQConfig

from .alerts import AlertSettings
from .app import AppSettings
from .database import DatabaseSettings
from .hub import HubSettings
from .logs import LoggingSettings
from .queue import QueueSettings
from .unified import get_settings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_hub_settings() -> HubSettings:
    """Get cached hub and handler pool settings."""
    return HubSettings()


@lru_cache(maxsize=1)
def get_dlq_settings() -> DLQConfig:
    """Get cached retry and dead-letter settings."""
    return DLQConfig()


@lru_cache(maxsize=1)
def get_queue_settings() -> QueueSettings:
    """Get cached durable queue settings."""
    return QueueSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached event log database settings."""
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_alert_settings() -> AlertSettings:
    """Get cached alert settings."""
    return AlertSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    """
    get_app_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_hub_settings.cache_clear()
    get_dlq_settings.cache_clear()
    get_queue_settings.cache_clear()
    get_db_settings.cache_clear()
    get_alert_settings.cache_clear()
    get_settings.cache_clear()
