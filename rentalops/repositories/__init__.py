"""Database repositories for the rental operations service."""

from rentalops.repositories import bookings, dashboards, references

__all__ = ["bookings", "dashboards", "references"]
