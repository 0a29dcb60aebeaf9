"""Multi-tenant task service built around a tenant-scoped event pipeline."""

__version__ = "0.1.0"
