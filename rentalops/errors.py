"""Domain error taxonomy for the booking engine.

All errors surface synchronously from the operation that detected them.
Routers translate them to HTTP responses (see ``rentalops.core.errors``).
"""

from typing import Any, Optional


class BookingError(Exception):
    """Base class for booking engine errors."""


class ValidationError(BookingError):
    """Malformed or referentially invalid input. Nothing was written."""

    def __init__(
        self,
        reason: str,
        field: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.reason = reason
        self.field = field
        self.detail = detail or reason.replace("_", " ")
        message = f"{self.detail} ({field})" if field else self.detail
        super().__init__(message)


class NotFoundError(BookingError):
    """Operation targets an entity that does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(BookingError):
    """Concurrent edit collision detected through the job version counter."""

    def __init__(self, job_id: int, expected_version: int, actual_version: int):
        self.job_id = job_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Job {job_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class PersistenceError(BookingError):
    """Storage-layer failure.

    ``retryable`` is True for connectivity loss and timeouts; constraint
    violations are not retryable as-is.
    """

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)
