"""Event distribution: the fan-out hub plus retry and dead-letter handling."""
