"""Command line interface for taskhub-service."""
