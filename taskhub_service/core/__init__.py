"""Core domain building blocks: settings, exceptions, tenants and events."""
