"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (app, logging, hub, dlq, queue, db, alerts),
each with its own environment prefix, frozen once loaded, and cached by the
``get_*_settings()`` loaders. ``get_settings()`` composes them all.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .alerts import AlertSettings
from .app import AppSettings
from .database import DatabaseSettings
from .hub import HubSettings
from .loader import (
    clear_all_caches,
    get_alert_settings,
    get_app_settings,
    get_db_settings,
    get_dlq_settings,
    get_hub_settings,
    get_logging_settings,
    get_queue_settings,
)
from .logs import LoggingSettings
from .queue import QueueSettings
from .unified import Settings, get_settings

__all__ = [
    "AlertSettings",
    "AppSettings",
    "DatabaseSettings",
    "HubSettings",
    "LoggingSettings",
    "QueueSettings",
    "Settings",
    "clear_all_caches",
    "get_alert_settings",
    "get_app_settings",
    "get_db_settings",
    "get_dlq_settings",
    "get_hub_settings",
    "get_logging_settings",
    "get_queue_settings",
    "get_settings",
]
