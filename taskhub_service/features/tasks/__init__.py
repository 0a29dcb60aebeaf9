"""Task API: publishes task events and serves applied task state."""
