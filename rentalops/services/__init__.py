"""Business logic services for the rental operations service."""

from rentalops.services import allocation, dashboard, jobs, pricing

__all__ = ["allocation", "dashboard", "jobs", "pricing"]
