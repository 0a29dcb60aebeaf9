"""Application features: tasks, admin, health and metrics."""
