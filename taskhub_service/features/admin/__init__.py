"""Administrative API: tenant lifecycle and dead-letter replay."""
