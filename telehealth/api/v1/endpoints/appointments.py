"""Appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from telehealth.dependencies import CurrentPatient, CurrentUser, DatabaseSession, Now
from telehealth.schemas.appointments import (
    AppointmentActionsResponse,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    CancellationResponse,
    RescheduleResponse,
)
from telehealth.services.appointment_service import AppointmentService
from telehealth.services.cancellation_service import CancellationService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: CurrentPatient,
    db: DatabaseSession,
    now: Now,
) -> AppointmentResponse:
    """
    Book a new appointment for the authenticated patient.

    Args:
        data: Appointment creation data
        current_user: Authenticated patient
        db: Database session
        now: Current instant

    Returns:
        Created appointment
    """
    service = AppointmentService(db)
    return await service.create_appointment(current_user.id, data, now)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List the caller's appointments with filtering.

    Args:
        current_user: Authenticated user
        db: Database session
        status_filter: Filter by status
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(status=status_filter, page=page, page_size=page_size)

    service = AppointmentService(db)
    return await service.list_appointments(current_user, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id, current_user)


@router.get(
    "/{appointment_id}/actions",
    response_model=AppointmentActionsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Permitted cancel/reschedule actions",
)
async def get_appointment_actions(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    now: Now,
) -> AppointmentActionsResponse:
    """
    Evaluate which actions the deadline policy permits right now.

    Args:
        appointment_id: Appointment ID
        current_user: Authenticated user
        db: Database session
        now: Current instant

    Returns:
        Permitted actions and the deadlines behind them
    """
    service = AppointmentService(db)
    return await service.get_permitted_actions(appointment_id, current_user, now)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    now: Now,
) -> AppointmentResponse:
    """
    Confirm, schedule or complete an appointment.

    Raises:
        HTTPException: If the transition is not allowed or access is denied
    """
    service = AppointmentService(db)
    return await service.update_appointment_status(appointment_id, current_user, data, now)


@router.post(
    "/{appointment_id}/cancel",
    response_model=CancellationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    now: Now,
) -> CancellationResponse:
    """
    Cancel an appointment, refunding 80% of a captured payment.

    Args:
        appointment_id: Appointment ID
        current_user: Authenticated user
        db: Database session
        now: Current instant

    Returns:
        Updated appointment and refund breakdown
    """
    service = CancellationService(db)
    return await service.cancel(appointment_id, now, current_user)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=RescheduleResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Check reschedule eligibility",
)
async def reschedule_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    now: Now,
) -> RescheduleResponse:
    """Confirm the appointment may be rescheduled before re-booking."""
    service = CancellationService(db)
    return await service.reschedule(appointment_id, now, current_user)
