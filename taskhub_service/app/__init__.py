"""FastAPI application: factory, lifespan, middleware and service container."""
