"""Job aggregate: types and models."""

from rentalops.bookings.models import CrewAssignment, Job, LineItem, ScheduleEntry
from rentalops.bookings.types import JobStatus, PaymentStatus

__all__ = [
    "CrewAssignment",
    "Job",
    "JobStatus",
    "LineItem",
    "PaymentStatus",
    "ScheduleEntry",
]
