"""Prometheus metrics."""

from .prometheus import REGISTRY

__all__ = ["REGISTRY"]
