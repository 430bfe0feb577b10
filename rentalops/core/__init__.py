"""Application wiring: lifespan, middleware, error handlers, Sentry."""
