"""FastAPI application: routes, middleware, configuration, logging."""
