"""Booking commands accepted by the job service."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from rentalops.bookings.models import CrewAssignment, Job, LineItem


@dataclass
class BookingCommand:
    """
    A create or update request for a job aggregate.

    ``job`` carries the header fields as supplied by the caller; its
    ``value``, status and discount fields are ignored and recomputed.
    ``line_items`` and ``crew`` are the complete new child sets.
    """

    job: Job
    line_items: list[LineItem] = field(default_factory=list)
    crew: list[CrewAssignment] = field(default_factory=list)
    discount_amount: Optional[Decimal] = None
    discount_percentage: Optional[Decimal] = None

    # Optimistic concurrency guard for updates (None = last writer wins)
    expected_version: Optional[int] = None
