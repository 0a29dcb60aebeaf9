"""Infrastructure: logging, metrics, messaging, queue, event log, storage."""
