"""Booking type definitions: job status and payment state machines."""

from enum import Enum


class JobStatus(str, Enum):
    """Job lifecycle statuses."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (job won't change)."""
        return self in (JobStatus.FINISHED, JobStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        """Scheduled, confirmed or in progress."""
        return not self.is_terminal

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in VALID_STATUS_TRANSITIONS[self]


class PaymentStatus(str, Enum):
    """Payment statuses. Pending -> Paid; reversal is an admin override."""

    PENDING = "pending"
    PAID = "paid"


# Initial states applied by create_job
INITIAL_JOB_STATUS = JobStatus.SCHEDULED
INITIAL_PAYMENT_STATUS = PaymentStatus.PENDING

# Valid forward transitions; cancelled is reachable from any non-terminal state
VALID_STATUS_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.SCHEDULED: {JobStatus.CONFIRMED, JobStatus.CANCELLED},
    JobStatus.CONFIRMED: {JobStatus.IN_PROGRESS, JobStatus.CANCELLED},
    JobStatus.IN_PROGRESS: {JobStatus.FINISHED, JobStatus.CANCELLED},
    JobStatus.FINISHED: set(),  # Terminal state
    JobStatus.CANCELLED: set(),  # Terminal state
}

ACTIVE_JOB_STATUSES = tuple(s for s in JobStatus if s.is_active)


class ScheduleKind(str, Enum):
    """Kinds of crew schedule entries."""

    WORK = "work"
