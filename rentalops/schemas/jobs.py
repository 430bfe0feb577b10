"""Job request and response schemas."""

from dataclasses import asdict
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from rentalops.bookings.commands import BookingCommand
from rentalops.bookings.models import CrewAssignment, Job, LineItem
from rentalops.bookings.types import JobStatus, PaymentStatus

# ===========================================
# Requests
# ===========================================


class LineItemRequest(BaseModel):
    """One billable row. Range checks happen in the allocation validator."""

    description: str = Field(..., max_length=255)
    quantity: int
    unit_price: Decimal
    line_discount: Decimal = Decimal("0")
    equipment_id: Optional[int] = None

    def to_line_item(self) -> LineItem:
        return LineItem(
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            line_discount=self.line_discount,
            equipment_id=self.equipment_id,
        )


class CrewMemberRequest(BaseModel):
    """One employee-to-role binding. Blank role defaults to Technician."""

    employee_id: int
    role: Optional[str] = Field(None, max_length=100)

    def to_assignment(self) -> CrewAssignment:
        return CrewAssignment(employee_id=self.employee_id, role=self.role or "")


class JobCommandRequest(BaseModel):
    """Create or update request carrying the complete job aggregate."""

    description: Optional[str] = Field(None, max_length=500)

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    arrival_time: Optional[time] = None
    event_start_time: Optional[time] = None
    event_end_time: Optional[time] = None

    client_id: Optional[int] = Field(None, description="Empty for a draft booking")
    operator_id: Optional[int] = None

    street: Optional[str] = None
    street_number: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, max_length=2)
    postal_code: Optional[str] = None

    requester_name: Optional[str] = None
    requester_email: Optional[str] = None
    requester_phone: Optional[str] = None

    payer_name: Optional[str] = None
    payer_tax_id: Optional[str] = None
    payer_email: Optional[str] = None
    payer_postal_code: Optional[str] = None
    payer_street: Optional[str] = None
    payer_number: Optional[str] = None
    payer_district: Optional[str] = None
    payer_city: Optional[str] = None
    payer_state: Optional[str] = Field(None, max_length=2)
    payer_address: Optional[str] = None

    payment_method: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_term_days: Optional[int] = None
    due_date: Optional[date] = None

    discount_amount: Optional[Decimal] = Field(
        None, description="Absolute discount; takes precedence over percentage"
    )
    discount_percentage: Optional[Decimal] = None
    discount_reason: Optional[str] = None

    notes: Optional[str] = None

    line_items: list[LineItemRequest] = Field(default_factory=list)
    crew: list[CrewMemberRequest] = Field(default_factory=list)

    expected_version: Optional[int] = Field(
        None, description="Reject the update if the stored version differs"
    )

    def to_command(self) -> BookingCommand:
        header = self.model_dump(
            exclude={
                "line_items",
                "crew",
                "expected_version",
                "discount_amount",
                "discount_percentage",
            }
        )
        return BookingCommand(
            job=Job(**header),
            line_items=[item.to_line_item() for item in self.line_items],
            crew=[member.to_assignment() for member in self.crew],
            discount_amount=self.discount_amount,
            discount_percentage=self.discount_percentage,
            expected_version=self.expected_version,
        )


class StatusChangeRequest(BaseModel):
    status: JobStatus


class PaymentChangeRequest(BaseModel):
    payment_status: PaymentStatus
    override: bool = Field(
        default=False, description="Required to revert a paid job to pending"
    )


# ===========================================
# Responses
# ===========================================


class LineItemResponse(BaseModel):
    id: Optional[int] = None
    description: str
    quantity: int
    unit_price: Decimal
    line_discount: Decimal
    equipment_id: Optional[int] = None


class CrewMemberResponse(BaseModel):
    id: Optional[int] = None
    employee_id: int
    role: str
    employee_name: Optional[str] = None
    employee_position: Optional[str] = None


class JobResponse(BaseModel):
    """A job with its children and derived flags."""

    id: int
    order_number: Optional[str] = None
    description: Optional[str] = None
    value: Decimal
    status: JobStatus
    payment_status: PaymentStatus
    version: int

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    arrival_time: Optional[time] = None
    event_start_time: Optional[time] = None
    event_end_time: Optional[time] = None

    client_id: Optional[int] = None
    client_name: Optional[str] = None
    client_document: Optional[str] = None
    operator_id: Optional[int] = None
    operator_name: Optional[str] = None

    street: Optional[str] = None
    street_number: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None

    requester_name: Optional[str] = None
    requester_email: Optional[str] = None
    requester_phone: Optional[str] = None

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

    payment_method: Optional[str] = None
    payment_terms: Optional[str] = None
    payment_term_days: Optional[int] = None
    due_date: Optional[date] = None
    is_overdue: bool = False

    discount_amount: Decimal = Decimal("0")
    discount_percentage: Optional[Decimal] = None
    discount_reason: Optional[str] = None

    notes: Optional[str] = None

    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    line_items: list[LineItemResponse] = Field(default_factory=list)
    crew: list[CrewMemberResponse] = Field(default_factory=list)

    @classmethod
    def from_job(cls, job: Job, today: date) -> "JobResponse":
        return cls.model_validate({**asdict(job), "is_overdue": job.is_overdue(today)})


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int


class JobWriteResponse(BaseModel):
    """Result of a create or update."""

    id: int
    version: int
    value: Decimal
    order_number: Optional[str] = None
    warnings: list[str] = Field(
        default_factory=list, description="Pricing warnings, e.g. total_clamped_to_zero"
    )


class JobStateResponse(BaseModel):
    """Result of a status or payment status change."""

    id: int
    status: JobStatus
    payment_status: PaymentStatus
    version: int
    changed: bool
