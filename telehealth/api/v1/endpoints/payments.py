"""Payment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from telehealth.dependencies import CurrentPatient, CurrentUser, DatabaseSession, Now
from telehealth.schemas.payments import (
    MonthlySummary,
    PaymentCreate,
    PaymentResponse,
    ReconciledPayment,
)
from telehealth.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Payments"],
    summary="Pay for an appointment",
)
async def create_payment(
    data: PaymentCreate,
    current_user: CurrentPatient,
    db: DatabaseSession,
    now: Now,
) -> PaymentResponse:
    """
    Capture a payment for one of the patient's appointments.

    Args:
        data: Payment data
        current_user: Authenticated patient
        db: Database session
        now: Current instant

    Returns:
        Recorded payment
    """
    service = PaymentService(db)
    return await service.create_payment(current_user, data, now)


@router.get(
    "/",
    response_model=list[ReconciledPayment],
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Reconciled payment history",
)
async def list_payments(
    current_user: CurrentUser,
    db: DatabaseSession,
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
) -> list[ReconciledPayment]:
    """
    Payment history with each refund folded into its original payment.

    Args:
        current_user: Authenticated patient or doctor
        db: Database session
        from_date: Earliest payment date
        to_date: Latest payment date

    Returns:
        Reconciled payments, newest first
    """
    service = PaymentService(db)
    return await service.get_reconciled_payments(current_user, from_date, to_date)


@router.get(
    "/summary",
    response_model=MonthlySummary,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Monthly payment totals",
)
async def get_monthly_summary(
    current_user: CurrentUser,
    db: DatabaseSession,
    now: Now,
    year: int | None = Query(None, ge=2000, le=9999),
    month: int | None = Query(None, ge=1, le=12),
) -> MonthlySummary:
    """
    Gross, refunded, penalty and net totals for one month.

    Defaults to the current month.
    """
    service = PaymentService(db)
    return await service.get_monthly_summary(
        current_user,
        year or now.year,
        month or now.month,
    )


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Get payment by ID",
)
async def get_payment(
    payment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PaymentResponse:
    """Get a specific payment by ID."""
    service = PaymentService(db)
    return await service.get_payment(payment_id, current_user)
