"""Dead-letter alerting settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertSettings(BaseSettings):
    """Alert channel configuration.

    Environment variables use ALERT_ prefix.
    Example: ALERT_CHANNELS='["log","webhook"]', ALERT_WEBHOOK_URL=https://hooks.example.com/x
    """

    enabled: bool = Field(default=True, description="Raise alerts on dead-lettering.")
    channels: tuple[str, ...] = Field(
        default=("log",),
        description="Enabled channels: log, webhook.",
    )
    webhook_url: str | None = Field(default=None, description="Webhook endpoint for alerts.")
    webhook_timeout_seconds: float = Field(default=5.0, gt=0, le=60)
    rate_limit_seconds: int = Field(
        default=60,
        ge=0,
        le=86_400,
        description="Minimum seconds between alerts for the same source and reason (0 = no limit).",
    )
    include_body_preview: bool = Field(
        default=True,
        description="Include a truncated dead-lettered body in alerts.",
    )
    max_preview_length: int = Field(default=500, ge=50, le=10_000)

    model_config = SettingsConfigDict(
        env_prefix="ALERT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
