"""Storage gateway and schema for the booking engine."""

from rentalops.db.gateway import StorageGateway

__all__ = ["StorageGateway"]
