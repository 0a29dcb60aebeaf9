"""Retry policy and dead-letter configuration.

Controls how the hub backs off between handler attempts and when an event
delivery gives up and is moved to dead-letter storage.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetryPolicy(StrEnum):
    """Delay progression between retry attempts.

    With initial_delay_ms=1000:

        Retry | IMMEDIATE | LINEAR | EXPONENTIAL | FIBONACCI
        ------|-----------|--------|-------------|----------
        1     | 0ms       | 1000ms | 1000ms      | 1000ms
        2     | 0ms       | 2000ms | 2000ms      | 1000ms
        3     | 0ms       | 3000ms | 4000ms      | 2000ms
        4     | 0ms       | 4000ms | 8000ms      | 3000ms
    """

    IMMEDIATE = "immediate"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    FIBONACCI = "fibonacci"


class DLQConfig(BaseSettings):
    """Retry and dead-letter behavior for hub deliveries.

    Environment variables use DLQ_ prefix (e.g., DLQ_MAX_ATTEMPTS=5).

    Attributes:
        max_attempts: Total attempts per (event, handler), the first included.
        retry_policy: Retry delay calculation policy.
        initial_delay_ms: Delay before the first retry.
        max_delay_ms: Cap applied to every computed delay.
        retry_multiplier: Multiplier for the exponential policy.
        jitter: Scale each delay by a random factor from jitter_range.
        jitter_range: Jitter multiplier range (min, max).
        non_retryable_exceptions: Exception class names that dead-letter immediately.
        retryable_exceptions: Only retry these exception class names (None = all).
    """

    max_attempts: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Total delivery attempts before dead-lettering (1-50).",
    )
    retry_policy: RetryPolicy = Field(
        default=RetryPolicy.EXPONENTIAL,
        description="Retry delay calculation policy.",
    )
    initial_delay_ms: int = Field(
        default=500,
        ge=0,
        le=60_000,
        description="Initial retry delay in milliseconds.",
    )
    max_delay_ms: int = Field(
        default=30_000,
        ge=0,
        le=3_600_000,
        description="Maximum retry delay in milliseconds.",
    )
    retry_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Backoff multiplier for exponential policy.",
    )
    jitter: bool = Field(
        default=True,
        description="Add random jitter to retry delays.",
    )
    jitter_range: tuple[float, float] = Field(
        default=(0.5, 1.5),
        description="Jitter multiplier range (min, max).",
    )
    non_retryable_exceptions: tuple[str, ...] = Field(
        default=(
            "TypeError",
            "AttributeError",
            "ValidationError",
            "JSONDecodeError",
        ),
        description="Exception class names that skip retry (permanent failures).",
    )
    retryable_exceptions: tuple[str, ...] | None = Field(
        default=None,
        description="Only retry these exception class names (None = retry all except non-retryable).",
    )

    model_config = SettingsConfigDict(
        env_prefix="DLQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_delays(self) -> DLQConfig:
        """Ensure max_delay >= initial_delay."""
        if self.max_delay_ms < self.initial_delay_ms:
            msg = (
                f"max_delay_ms ({self.max_delay_ms}) must be >= "
                f"initial_delay_ms ({self.initial_delay_ms})"
            )
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def _validate_jitter_range(self) -> DLQConfig:
        """Ensure jitter range is valid (min < max, both positive)."""
        min_jitter, max_jitter = self.jitter_range
        if min_jitter < 0 or max_jitter < 0:
            msg = "Jitter range values must be positive"
            raise ValueError(msg)
        if min_jitter >= max_jitter:
            msg = f"Jitter range min ({min_jitter}) must be < max ({max_jitter})"
            raise ValueError(msg)
        return self

    def should_retry_exception(self, exception: BaseException) -> bool:
        """Check if an exception should trigger a retry.

        Exceptions are NOT retried if their class name is listed in
        non_retryable_exceptions, or if retryable_exceptions is set and the
        name is missing from it.

        Example:
            config = DLQConfig(non_retryable_exceptions=("ValueError",))
            assert not config.should_retry_exception(ValueError("bad input"))
            assert config.should_retry_exception(ConnectionError("reset"))
        """
        exc_name = type(exception).__name__

        if exc_name in self.non_retryable_exceptions:
            return False

        if self.retryable_exceptions is not None:
            return exc_name in self.retryable_exceptions

        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary for logging/debugging."""
        return {
            "max_attempts": self.max_attempts,
            "retry_policy": self.retry_policy.value,
            "initial_delay_ms": self.initial_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "retry_multiplier": self.retry_multiplier,
            "jitter": self.jitter,
            "jitter_range": self.jitter_range,
            "non_retryable_exceptions": self.non_retryable_exceptions,
            "retryable_exceptions": self.retryable_exceptions,
        }


__all__ = ["DLQConfig", "RetryPolicy"]
