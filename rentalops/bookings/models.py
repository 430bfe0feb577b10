"""Booking data models."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from rentalops.bookings.types import (
    INITIAL_JOB_STATUS,
    INITIAL_PAYMENT_STATUS,
    JobStatus,
    PaymentStatus,
)

# Writable job columns, in storage order. Attribute names match column names.
JOB_COLUMNS: tuple[str, ...] = (
    "description",
    "value",
    "start_date",
    "end_date",
    "arrival_time",
    "event_start_time",
    "event_end_time",
    "client_id",
    "operator_id",
    "street",
    "street_number",
    "district",
    "city",
    "state",
    "postal_code",
    "requester_name",
    "requester_email",
    "requester_phone",
    "payer_name",
    "payer_tax_id",
    "payer_email",
    "payer_postal_code",
    "payer_street",
    "payer_number",
    "payer_district",
    "payer_city",
    "payer_state",
    "payer_address",
    "payment_method",
    "payment_terms",
    "payment_term_days",
    "due_date",
    "discount_percentage",
    "discount_amount",
    "discount_reason",
    "notes",
)


@dataclass
class LineItem:
    """One billable row attached to a job."""

    description: str
    quantity: int
    unit_price: Decimal
    line_discount: Decimal = Decimal("0")
    equipment_id: Optional[int] = None

    # Storage identity, not part of item equality
    id: Optional[int] = field(default=None, compare=False)
    job_id: Optional[int] = field(default=None, compare=False)

    @classmethod
    def from_row(cls, row: dict) -> "LineItem":
        """Create from database row."""
        return cls(
            id=row.get("id"),
            job_id=row.get("job_id"),
            description=row["description"],
            quantity=row["quantity"],
            unit_price=Decimal(row["unit_price"]),
            line_discount=Decimal(row.get("line_discount") or 0),
            equipment_id=row.get("equipment_id"),
        )


@dataclass
class CrewAssignment:
    """One employee-to-role binding on a job."""

    employee_id: int
    role: str

    id: Optional[int] = field(default=None, compare=False)
    job_id: Optional[int] = field(default=None, compare=False)

    # Display fields joined from employees on the crew read path
    employee_name: Optional[str] = field(default=None, compare=False)
    employee_position: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_row(cls, row: dict) -> "CrewAssignment":
        """Create from database row."""
        return cls(
            id=row.get("id"),
            job_id=row.get("job_id"),
            employee_id=row["employee_id"],
            role=row["role"],
            employee_name=row.get("employee_name"),
            employee_position=row.get("employee_position"),
        )


@dataclass
class ScheduleEntry:
    """A crew member's work window derived from a crew assignment."""

    employee_id: int
    start_date: date
    end_date: date
    kind: str
    note: Optional[str] = None
    job_id: Optional[int] = None


@dataclass
class Job:
    """A bookable work order with its billable items and crew."""

    description: Optional[str] = None
    value: Decimal = Decimal("0")

    # Schedule
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    arrival_time: Optional[time] = None
    event_start_time: Optional[time] = None
    event_end_time: Optional[time] = None

    # State
    status: JobStatus = INITIAL_JOB_STATUS
    payment_status: PaymentStatus = INITIAL_PAYMENT_STATUS

    # References
    client_id: Optional[int] = None
    operator_id: Optional[int] = None

    # Delivery address
    street: Optional[str] = None
    street_number: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None

    # Requester contact
    requester_name: Optional[str] = None
    requester_email: Optional[str] = None
    requester_phone: Optional[str] = None

    # Payer
    payer_name: Optional[str] = None
    payer_tax_id: Optional[str] = None
    payer_email: Optional[str] = None
    payer_postal_code: Optional[str] = None
    payer_street: Optional[str] = None
    payer_number: Optional[str] = None
    payer_district: Optional[str] = None
    payer_city: Optional[str] = None
    payer_state: Optional[str] = None
    payer_address: Optional[str] = None

    # Payment terms
    payment_method: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_term_days: Optional[int] = None
    due_date: Optional[date] = None

    # Discount (effective values written by the pricing step)
    discount_percentage: Optional[Decimal] = None
    discount_amount: Decimal = Decimal("0")
    discount_reason: Optional[str] = None

    notes: Optional[str] = None

    # Assigned by storage
    id: Optional[int] = None
    order_number: Optional[str] = None
    version: int = 1
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Display fields joined on read
    client_name: Optional[str] = None
    client_document: Optional[str] = None
    operator_name: Optional[str] = None

    # Children
    line_items: list[LineItem] = field(default_factory=list)
    crew: list[CrewAssignment] = field(default_factory=list)

    def column_values(self) -> list[Any]:
        """Values of the writable columns, in JOB_COLUMNS order."""
        return [getattr(self, column) for column in JOB_COLUMNS]

    def is_overdue(self, today: date) -> bool:
        """Due date passed while payment is still pending on a live job."""
        return (
            self.due_date is not None
            and self.due_date < today
            and self.payment_status == PaymentStatus.PENDING
            and self.status != JobStatus.CANCELLED
        )

    @property
    def is_revenue_recognized(self) -> bool:
        return (
            self.status == JobStatus.FINISHED
            and self.payment_status == PaymentStatus.PAID
        )

    @classmethod
    def from_row(
        cls,
        row: dict,
        line_items: Optional[list[LineItem]] = None,
        crew: Optional[list[CrewAssignment]] = None,
    ) -> "Job":
        """Create from database row."""
        values = {column: row.get(column) for column in JOB_COLUMNS}
        values["value"] = Decimal(row.get("value") or 0)
        values["discount_amount"] = Decimal(row.get("discount_amount") or 0)
        if values["discount_percentage"] is not None:
            values["discount_percentage"] = Decimal(values["discount_percentage"])

        return cls(
            id=row["id"],
            order_number=row.get("order_number"),
            status=JobStatus(row["status"]),
            payment_status=PaymentStatus(row["payment_status"]),
            version=row.get("version") or 1,
            created_by=row.get("created_by"),
            updated_by=row.get("updated_by"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            client_name=row.get("client_name"),
            client_document=row.get("client_document"),
            operator_name=row.get("operator_name"),
            line_items=list(line_items or []),
            crew=list(crew or []),
            **values,
        )
