"""Durable queue settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QueueSettings(BaseSettings):
    """Durable queue configuration.

    Environment variables use QUEUE_ prefix.
    Example: QUEUE_LEASE_SECONDS=30, QUEUE_MAX_DELIVERY_ATTEMPTS=5
    """

    lease_seconds: float = Field(
        default=30.0,
        gt=0,
        le=43_200,
        description="Visibility window granted by receive().",
    )
    max_delivery_attempts: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Deliveries allowed before a message is dead-lettered.",
    )
    consumer_count: int = Field(
        default=2,
        ge=1,
        le=256,
        description="Number of core service consumers started with the app.",
    )
    poll_interval_seconds: float = Field(
        default=0.2,
        gt=0,
        le=60,
        description="Idle sleep between receive() attempts.",
    )
    batch_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum messages a consumer handles per loop iteration.",
    )
    sweep_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        le=3600,
        description="How often expired leases are released while consumers are idle or stopped.",
    )
    dedup_retention_seconds: float = Field(
        default=86_400.0,
        gt=0,
        description="How long a dedup id is remembered after its message left the queue.",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )
