"""Admin endpoints."""

from fastapi import APIRouter, status

from telehealth.config import settings
from telehealth.dependencies import CurrentAdmin, DatabaseSession, Now
from telehealth.schemas.appointments import CleanupRequest, CleanupResponse
from telehealth.services.appointment_service import AppointmentService

router = APIRouter(prefix="/admin")


@router.post(
    "/cleanup-appointments",
    response_model=CleanupResponse,
    status_code=status.HTTP_200_OK,
    tags=["Admin"],
    summary="Release stale unpaid bookings",
)
async def cleanup_appointments(
    current_user: CurrentAdmin,
    db: DatabaseSession,
    now: Now,
    data: CleanupRequest | None = None,
) -> CleanupResponse:
    """
    Cancel pending bookings that were never paid.

    Args:
        current_user: Authenticated administrator
        db: Database session
        now: Current instant
        data: Optional age threshold in minutes

    Returns:
        Number of bookings released
    """
    minutes = (data.minutes if data else None) or settings.pending_appointment_timeout_minutes
    service = AppointmentService(db)
    processed = await service.cleanup_pending_appointments(minutes, now)
    return CleanupResponse(processed=processed)
