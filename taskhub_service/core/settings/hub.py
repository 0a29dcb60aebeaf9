"""Event distribution hub and handler pool settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HubSettings(BaseSettings):
    """Fan-out hub and handler pool configuration.

    Environment variables use HUB_ prefix.
    Example: HUB_MAX_CONCURRENCY=64, HUB_HANDLER_TIMEOUT_SECONDS=10
    """

    max_concurrency: int = Field(
        default=32,
        ge=1,
        le=10_000,
        description="Maximum handler invocations running at the same time.",
    )
    handler_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=3600,
        description="Per-invocation timeout; a timed-out invocation is retried.",
    )
    ordered_delivery: bool = Field(
        default=True,
        description="Serialize deliveries per (handler, tenant, event type).",
    )
    dedup_window_seconds: float | None = Field(
        default=86_400.0,
        gt=0,
        description="Forget processed event ids after this many seconds (None = never).",
    )

    model_config = SettingsConfigDict(
        env_prefix="HUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
