"""Job endpoints: booking create/update/delete, state changes and reads."""

from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status

from rentalops.config import Settings, get_settings
from rentalops.core.lifespan import get_gateway
from rentalops.db.gateway import StorageGateway
from rentalops.deps.identity import get_current_user_id
from rentalops.schemas import (
    CrewMemberResponse,
    ErrorResponse,
    JobCommandRequest,
    JobListResponse,
    JobResponse,
    JobStateResponse,
    JobWriteResponse,
    PaymentChangeRequest,
    StatusChangeRequest,
)
from rentalops.services.jobs import JobService, JobStateResult, JobWriteResult

router = APIRouter(prefix="/jobs", tags=["jobs"])
logger = structlog.get_logger(__name__)

_ERRORS = {
    404: {"model": ErrorResponse, "description": "Job not found"},
    422: {"model": ErrorResponse, "description": "Invalid input"},
    503: {"model": ErrorResponse, "description": "Storage unavailable"},
}
_UPDATE_ERRORS = {
    **_ERRORS,
    409: {"model": ErrorResponse, "description": "Stale expected_version"},
}


def get_job_service(
    gateway: StorageGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> JobService:
    return JobService.from_settings(gateway, settings)


def _write_response(result: JobWriteResult) -> JobWriteResponse:
    return JobWriteResponse(
        id=result.job_id,
        version=result.version,
        value=result.value,
        order_number=result.order_number,
        warnings=list(result.warnings),
    )


def _state_response(result: JobStateResult) -> JobStateResponse:
    return JobStateResponse(
        id=result.job_id,
        status=result.status,
        payment_status=result.payment_status,
        version=result.version,
        changed=result.changed,
    )


@router.post(
    "",
    response_model=JobWriteResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def create_job(
    request: JobCommandRequest,
    service: JobService = Depends(get_job_service),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> JobWriteResponse:
    """
    Create a job with its line items and crew.

    The total is computed from the line items and discount; a client-supplied
    value is never trusted. New jobs start scheduled with payment pending.
    """
    result = await service.create_job(request.to_command(), user_id=user_id)
    return _write_response(result)


@router.get("", response_model=JobListResponse)
async def list_jobs(service: JobService = Depends(get_job_service)) -> JobListResponse:
    """List all jobs, most recent first, with line items (crew not loaded)."""
    jobs = await service.list_jobs()
    today = date.today()
    return JobListResponse(
        jobs=[JobResponse.from_job(job, today) for job in jobs],
        total=len(jobs),
    )


@router.get("/active", response_model=JobListResponse)
async def list_active_jobs(
    service: JobService = Depends(get_job_service),
) -> JobListResponse:
    """Scheduled, confirmed and in-progress jobs by start date."""
    jobs = await service.list_active_jobs()
    today = date.today()
    return JobListResponse(
        jobs=[JobResponse.from_job(job, today) for job in jobs],
        total=len(jobs),
    )


@router.get("/{job_id}", response_model=JobResponse, responses=_ERRORS)
async def get_job(
    job_id: int,
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    """Get a job with its line items, crew and derived overdue flag."""
    job = await service.get_job(job_id)
    return JobResponse.from_job(job, date.today())


@router.get(
    "/{job_id}/crew",
    response_model=list[CrewMemberResponse],
    responses=_ERRORS,
)
async def get_job_crew(
    job_id: int,
    service: JobService = Depends(get_job_service),
) -> list[CrewMemberResponse]:
    """Crew of a job with employee name and position."""
    crew = await service.get_job_crew(job_id)
    return [
        CrewMemberResponse(
            id=member.id,
            employee_id=member.employee_id,
            role=member.role,
            employee_name=member.employee_name,
            employee_position=member.employee_position,
        )
        for member in crew
    ]


@router.put(
    "/{job_id}", response_model=JobWriteResponse, responses=_UPDATE_ERRORS
)
async def update_job(
    job_id: int,
    request: JobCommandRequest,
    service: JobService = Depends(get_job_service),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> JobWriteResponse:
    """
    Replace a job and its complete line item and crew sets.

    Send ``expected_version`` to fail with 409 instead of overwriting a
    concurrent edit. Status and payment status are not changed here.
    """
    result = await service.update_job(job_id, request.to_command(), user_id=user_id)
    return _write_response(result)


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
)
async def delete_job(
    job_id: int,
    service: JobService = Depends(get_job_service),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> None:
    """Delete a job with its line items, crew and schedule entries."""
    await service.delete_job(job_id)
    logger.info("job_delete_completed", job_id=job_id, user_id=user_id)


@router.post("/{job_id}/status", response_model=JobStateResponse, responses=_ERRORS)
async def change_status(
    job_id: int,
    request: StatusChangeRequest,
    service: JobService = Depends(get_job_service),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> JobStateResponse:
    """
    Move a job along its lifecycle.

    scheduled -> confirmed -> in_progress -> finished; cancelled from any
    non-terminal status.
    """
    result = await service.change_status(job_id, request.status, user_id=user_id)
    return _state_response(result)


@router.post("/{job_id}/payment", response_model=JobStateResponse, responses=_ERRORS)
async def change_payment_status(
    job_id: int,
    request: PaymentChangeRequest,
    service: JobService = Depends(get_job_service),
    user_id: Optional[str] = Depends(get_current_user_id),
) -> JobStateResponse:
    """Mark a job paid, or revert it to pending with ``override``."""
    result = await service.change_payment_status(
        job_id,
        request.payment_status,
        override=request.override,
        user_id=user_id,
    )
    return _state_response(result)
