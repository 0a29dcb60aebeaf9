"""Application settings for FastAPI configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production", "test"]


class AppSettings(BaseSettings):
    """FastAPI application settings.

    Environment variables use APP_ prefix.
    Example: APP_DEBUG=true, APP_ADMIN_TOKEN=secret
    """

    # Service identity
    service_name: str = Field(
        default="taskhub-service",
        min_length=1,
        max_length=100,
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
        description="Service name for logging and metrics (lowercase, hyphens allowed)",
    )
    title: str = Field(
        default="Taskhub Service API",
        min_length=1,
        max_length=200,
        description="API title displayed in documentation",
    )
    version: str = Field(
        default="0.1.0",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9]+)?$",
        description="API version (semver format)",
    )
    environment: Environment = Field(
        default="development",
        description="Environment: development|staging|production|test",
    )
    api_prefix: str = Field(
        default="/api/v1",
        min_length=1,
        max_length=255,
        pattern=r"^/.*$",
        description="Base URL prefix for API routes",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Bind host for uvicorn")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port for uvicorn")

    # Administrative surface
    admin_token: SecretStr = Field(
        default=SecretStr("change-me"),
        description="Shared secret expected in the X-Admin-Token header",
    )

    # Static bearer tokens for the authentication collaborator: token -> tenant_id
    api_tokens: dict[str, str] = Field(
        default_factory=dict,
        description="Bearer token to tenant id mapping (JSON object)",
    )

    # Namespace templates applied when onboarding without explicit namespaces
    data_namespace_template: str = Field(
        default="tenant_{tenant_id}",
        description="Template for a tenant's data namespace",
    )
    storage_namespace_template: str = Field(
        default="tenants/{tenant_id}",
        description="Template for a tenant's storage namespace",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"
