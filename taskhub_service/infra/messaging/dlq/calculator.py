"""Retry delay calculation.

Pure functions with no I/O; the hub calls ``delay_seconds`` between a failed
attempt and the next one.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import DLQConfig, RetryPolicy


def calculate_delay(config: DLQConfig, retry_index: int) -> int:
    """Calculate the delay in milliseconds before retry number ``retry_index``.

    Args:
        config: Retry configuration with policy and delay settings.
        retry_index: 0 for the first retry, 1 for the second, and so on.

    Returns:
        Delay in milliseconds, capped by max_delay_ms and jittered when enabled.

    Example:
        config = DLQConfig(retry_policy=RetryPolicy.EXPONENTIAL, initial_delay_ms=1000, jitter=False)
        calculate_delay(config, 0)  # 1000
        calculate_delay(config, 2)  # 4000
    """
    base_delay = _base_delay(
        policy=config.retry_policy,
        initial_delay_ms=config.initial_delay_ms,
        multiplier=config.retry_multiplier,
        retry_index=max(retry_index, 0),
    )
    capped = min(base_delay, float(config.max_delay_ms))

    if config.jitter and capped > 0:
        capped = _apply_jitter(capped, config.jitter_range)

    return int(capped)


def delay_seconds(config: DLQConfig, retry_index: int) -> float:
    """Same as calculate_delay, in seconds for asyncio.sleep()."""
    return calculate_delay(config, retry_index) / 1000.0


def _base_delay(
    policy: RetryPolicy,
    initial_delay_ms: int,
    multiplier: float,
    retry_index: int,
) -> float:
    from .config import RetryPolicy

    match policy:
        case RetryPolicy.IMMEDIATE:
            return 0.0
        case RetryPolicy.LINEAR:
            return float(initial_delay_ms * (retry_index + 1))
        case RetryPolicy.EXPONENTIAL:
            return initial_delay_ms * (multiplier**retry_index)
        case RetryPolicy.FIBONACCI:
            return float(initial_delay_ms * _fibonacci(retry_index + 1))
        case _:
            return float(initial_delay_ms)


def _fibonacci(n: int) -> int:
    """Return F(n) with F(1) = F(2) = 1."""
    if n <= 0:
        return 0
    a, b = 0, 1
    for _ in range(n - 1):
        a, b = b, a + b
    return b


def _apply_jitter(delay: float, jitter_range: tuple[float, float]) -> float:
    min_jitter, max_jitter = jitter_range
    return delay * random.uniform(min_jitter, max_jitter)  # noqa: S311


__all__ = ["calculate_delay", "delay_seconds"]
