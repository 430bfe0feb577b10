"""API routers for the rental operations service."""
