"""Event log database settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database configuration for the durable event log.

    Environment variables use DB_ prefix.
    Example: DB_URL=sqlite+aiosqlite:///./events.db
    """

    url: str | None = Field(
        default=None,
        description="SQLAlchemy async URL. When unset the event log is kept in memory.",
    )
    echo: bool = Field(default=False, description="Log emitted SQL statements.")
    pool_pre_ping: bool = Field(default=True, description="Test connections before use.")
    create_tables: bool = Field(
        default=True,
        description="Create the event_log table on startup when missing.",
    )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @property
    def is_configured(self) -> bool:
        """Check if a database URL was provided."""
        return bool(self.url)
