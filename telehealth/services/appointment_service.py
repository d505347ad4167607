"""Appointment service for business logic."""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, or_, select, true, update

from telehealth.config import settings
from telehealth.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)
from telehealth.models.appointments import appointments
from telehealth.schemas.appointments import (
    AppointmentActionsResponse,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentPaymentStatus,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    PermittedActions,
)
from telehealth.schemas.auth import AuthenticatedUser, UserRole
from telehealth.services.base import BaseService
from telehealth.services.cancellation_policy import deadlines_for, evaluate_deadline_policy

logger = structlog.get_logger()

# Statuses from which an appointment may still be cancelled or rescheduled
ACTIVE_STATUSES = frozenset(
    {
        AppointmentStatus.PENDING,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.SCHEDULED,
    }
)

# Transitions a doctor may apply directly. Cancellation is not one of them.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.SCHEDULED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED}),
    AppointmentStatus.SCHEDULED: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED}),
}


class AppointmentService(BaseService):
    """Service for managing appointments."""

    async def get_appointment_row(self, appointment_id: UUID) -> Any:
        """
        Fetch the raw appointment row.

        Raises:
            NotFoundException: If appointment not found
        """
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        result = await self._execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")

        return row

    async def create_appointment(
        self,
        patient_id: UUID,
        data: AppointmentCreate,
        now: datetime,
    ) -> AppointmentResponse:
        """
        Book a new appointment.

        Args:
            patient_id: ID of the patient booking the appointment
            data: Appointment creation data
            now: Current instant

        Returns:
            Created appointment

        Raises:
            ConflictException: If the slot is already held
        """
        hold_cutoff = now - timedelta(minutes=settings.pending_appointment_timeout_minutes)
        clash_stmt = select(appointments.c.id).where(
            and_(
                appointments.c.doctor_id == data.doctor_id,
                appointments.c.availability_date == data.availability_date,
                appointments.c.slot_start == data.slot_start,
                appointments.c.status.not_in(
                    [AppointmentStatus.CANCELLED.value, AppointmentStatus.RESCHEDULED.value]
                ),
                or_(
                    appointments.c.payment_status == AppointmentPaymentStatus.COMPLETED.value,
                    and_(
                        appointments.c.payment_status == AppointmentPaymentStatus.PENDING.value,
                        appointments.c.created_at > hold_cutoff,
                    ),
                ),
            )
        )
        clash = (await self._execute(clash_stmt)).first()
        if clash:
            raise ConflictException("This slot is already booked")

        values = {
            "patient_id": patient_id,
            "doctor_id": data.doctor_id,
            "availability_date": data.availability_date,
            "slot_start": data.slot_start,
            "slot_end": data.slot_end,
            "duration_minutes": data.duration_minutes,
            "price": data.price,
            "case_details": data.case_details,
            "status": AppointmentStatus.PENDING.value,
            "payment_status": AppointmentPaymentStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        }

        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self._execute(stmt)
        row = result.fetchone()
        await self._commit()

        logger.info(
            "appointment_booked",
            appointment_id=str(row.id),
            doctor_id=str(data.doctor_id),
            availability_date=data.availability_date.isoformat(),
        )
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def get_appointment(
        self,
        appointment_id: UUID,
        user: AuthenticatedUser,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user doesn't have access
        """
        row = await self.get_appointment_row(appointment_id)
        self._ensure_access(row, user)
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def list_appointments(
        self,
        user: AuthenticatedUser,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List the caller's appointments with filtering and pagination.

        Patients see their bookings, doctors see the appointments assigned to
        them and administrators see everything.
        """
        conditions = []

        if user.role == UserRole.PATIENT:
            conditions.append(appointments.c.patient_id == user.id)
        elif user.role == UserRole.DOCTOR:
            conditions.append(appointments.c.doctor_id == user.id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        where = and_(true(), *conditions)

        count_stmt = select(func.count()).select_from(appointments).where(where)
        total = (await self._execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(where)
            .order_by(appointments.c.availability_date.desc(), appointments.c.slot_start.desc())
            .limit(filters.page_size)
            .offset(offset)
        )
        rows = (await self._execute(stmt)).fetchall()

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(dict(row._mapping)) for row in rows],
        )

    async def get_permitted_actions(
        self,
        appointment_id: UUID,
        user: AuthenticatedUser,
        now: datetime,
    ) -> AppointmentActionsResponse:
        """Evaluate the deadline policy for an appointment at ``now``."""
        row = await self.get_appointment_row(appointment_id)
        self._ensure_access(row, user)

        permitted = evaluate_deadline_policy(row.availability_date, now)
        if AppointmentStatus(row.status) not in ACTIVE_STATUSES:
            permitted = PermittedActions.NONE

        deadlines = deadlines_for(row.availability_date)
        return AppointmentActionsResponse(
            appointment_id=row.id,
            permitted=permitted,
            can_cancel=permitted.can_cancel,
            can_reschedule=permitted.can_reschedule,
            cancel_deadline=deadlines.cancel,
            reschedule_deadline=deadlines.reschedule,
        )

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        user: AuthenticatedUser,
        data: AppointmentStatusUpdate,
        now: datetime,
    ) -> AppointmentResponse:
        """
        Apply a doctor-driven status transition.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller is not the appointment's doctor
            InvalidStateException: If the transition is not allowed
        """
        if user.role == UserRole.PATIENT:
            raise ForbiddenException("Only the doctor can change the appointment status")

        row = await self.get_appointment_row(appointment_id)
        self._ensure_access(row, user)

        current = AppointmentStatus(row.status)
        if data.status == AppointmentStatus.CANCELLED:
            raise InvalidStateException("Use the cancellation endpoint to cancel an appointment")
        if data.status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise InvalidStateException(
                f"Cannot change status from {current.value} to {data.status.value}"
            )

        updated = await self.transition_status(appointment_id, data.status, current, now)
        await self._commit()

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            old_status=current.value,
            new_status=data.status.value,
        )
        return AppointmentResponse.model_validate(dict(updated._mapping))

    async def transition_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        expected_prior_status: AppointmentStatus,
        now: datetime,
        **extra_values: Any,
    ) -> Any:
        """
        Conditionally update the status, guarded by the expected prior status.

        Does not commit. Returns the updated row.

        Raises:
            InvalidStateException: If the appointment no longer has the expected status
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == expected_prior_status.value,
                )
            )
            .values(status=status.value, updated_at=now, **extra_values)
            .returning(appointments)
        )
        row = (await self._execute(stmt)).fetchone()

        if row is None:
            await self.db.rollback()
            raise InvalidStateException("Appointment was modified by another request, please retry")

        return row

    async def cleanup_pending_appointments(self, minutes: int, now: datetime) -> int:
        """
        Cancel unpaid pending bookings older than ``minutes``.

        Payment status is left pending since nothing was captured.

        Returns:
            Number of appointments released
        """
        cutoff = now - timedelta(minutes=minutes)
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.status == AppointmentStatus.PENDING.value,
                    appointments.c.payment_status == AppointmentPaymentStatus.PENDING.value,
                    appointments.c.created_at < cutoff,
                )
            )
            .values(
                status=AppointmentStatus.CANCELLED.value,
                cancelled_at=now,
                updated_at=now,
            )
        )
        result = await self._execute(stmt)
        await self._commit()

        processed = result.rowcount or 0
        logger.info("pending_appointments_cleaned", minutes=minutes, processed=processed)
        return processed
