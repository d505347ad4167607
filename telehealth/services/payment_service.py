"""Payment service for capture, listing and reconciled views."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, insert, select, true, update
from sqlalchemy.exc import IntegrityError

from telehealth.core.exceptions import (
    BadRequestException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)
from telehealth.models.appointments import appointments
from telehealth.models.payments import payments
from telehealth.schemas.appointments import AppointmentPaymentStatus, AppointmentStatus
from telehealth.schemas.auth import AuthenticatedUser, UserRole
from telehealth.schemas.payments import (
    MonthlySummary,
    PaymentAppointmentContext,
    PaymentCreate,
    PaymentFilters,
    PaymentResponse,
    PaymentStatus,
    ReconciledPayment,
)
from telehealth.services.appointment_service import ACTIVE_STATUSES, AppointmentService
from telehealth.services.payment_reconciliation import reconcile_payments, summarize_month

logger = structlog.get_logger()

_PAYMENT_WITH_APPOINTMENT = select(
    payments,
    appointments.c.doctor_id.label("appointment_doctor_id"),
    appointments.c.patient_id.label("appointment_patient_id"),
    appointments.c.availability_date.label("appointment_date"),
    appointments.c.slot_start.label("appointment_slot_start"),
    appointments.c.slot_end.label("appointment_slot_end"),
    appointments.c.status.label("appointment_status"),
).select_from(payments.outerjoin(appointments, payments.c.appointment_id == appointments.c.id))


def _to_payment(row: Any) -> PaymentResponse:
    """Build a payment response from a joined payment/appointment row."""
    data = row._mapping
    context = None
    if data["appointment_doctor_id"] is not None:
        context = PaymentAppointmentContext(
            doctor_id=data["appointment_doctor_id"],
            patient_id=data["appointment_patient_id"],
            availability_date=data["appointment_date"],
            slot_start=data["appointment_slot_start"],
            slot_end=data["appointment_slot_end"],
            status=data["appointment_status"],
        )

    return PaymentResponse(
        id=data["id"],
        appointment_id=data["appointment_id"],
        patient_id=data["patient_id"],
        amount=data["amount"],
        method=data["method"],
        status=data["status"],
        transaction_id=data["transaction_id"],
        is_refund=data["is_refund"],
        payment_date=data["payment_date"],
        appointment=context,
    )


class PaymentService(AppointmentService):
    """Service for managing payments."""

    async def create_payment(
        self,
        user: AuthenticatedUser,
        data: PaymentCreate,
        now: datetime,
    ) -> PaymentResponse:
        """
        Capture a payment for an unpaid appointment.

        Args:
            user: Paying patient
            data: Payment data; amount, when given, must equal the appointment price
            now: Current instant

        Returns:
            Recorded payment

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller did not book the appointment
            BadRequestException: If the amount differs from the appointment price
            InvalidStateException: If already paid or no longer active
        """
        row = await self.get_appointment_row(data.appointment_id)
        if not user.is_admin and row.patient_id != user.id:
            raise ForbiddenException("You are not allowed to pay for this appointment")

        if AppointmentStatus(row.status) not in ACTIVE_STATUSES:
            raise InvalidStateException(f"Appointment is {row.status} and cannot be paid")
        if row.payment_status != AppointmentPaymentStatus.PENDING.value:
            raise InvalidStateException("Appointment has already been paid")

        # Captured amount must equal the price refunds are computed from
        if data.amount is not None and data.amount != row.price:
            raise BadRequestException(
                f"Payment amount must equal the appointment price of {row.price}"
            )

        amount = row.price
        payment_id = uuid4()

        try:
            payment_row = await self._execute(
                insert(payments).values(
                    id=payment_id,
                    appointment_id=row.id,
                    patient_id=row.patient_id,
                    amount=amount,
                    method=data.method.value,
                    status=PaymentStatus.COMPLETED.value,
                    transaction_id=data.transaction_id or f"txn_{uuid4().hex[:16]}",
                    is_refund=False,
                    payment_date=now,
                    created_at=now,
                    updated_at=now,
                )
                .returning(payments)
            )
            payment = payment_row.fetchone()

            values: dict[str, Any] = {
                "payment_status": AppointmentPaymentStatus.COMPLETED.value,
                "updated_at": now,
            }
            if row.status == AppointmentStatus.PENDING.value:
                values["status"] = AppointmentStatus.CONFIRMED.value

            result = await self._execute(
                update(appointments)
                .where(
                    and_(
                        appointments.c.id == row.id,
                        appointments.c.payment_status == AppointmentPaymentStatus.PENDING.value,
                        appointments.c.status == row.status,
                    )
                )
                .values(**values)
                .returning(appointments)
            )
            appointment = result.fetchone()
            if appointment is None:
                await self.db.rollback()
                raise InvalidStateException(
                    "Appointment was modified by another request, please retry"
                )

            await self._commit()
        except IntegrityError as e:
            raise InvalidStateException("Appointment has already been paid") from e

        logger.info(
            "payment_captured",
            payment_id=str(payment_id),
            appointment_id=str(row.id),
            amount=str(amount),
        )
        return PaymentResponse(
            id=payment.id,
            appointment_id=payment.appointment_id,
            patient_id=payment.patient_id,
            amount=payment.amount,
            method=payment.method,
            status=payment.status,
            transaction_id=payment.transaction_id,
            is_refund=payment.is_refund,
            payment_date=payment.payment_date,
            appointment=PaymentAppointmentContext(
                doctor_id=appointment.doctor_id,
                patient_id=appointment.patient_id,
                availability_date=appointment.availability_date,
                slot_start=appointment.slot_start,
                slot_end=appointment.slot_end,
                status=appointment.status,
            ),
        )

    async def list_payments(self, filters: PaymentFilters) -> list[PaymentResponse]:
        """
        List payment and refund rows joined with their appointment.

        Args:
            filters: Patient or doctor scope and optional date range

        Returns:
            Payments, newest first
        """
        conditions = []

        if filters.patient_id:
            conditions.append(payments.c.patient_id == filters.patient_id)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.from_date:
            conditions.append(payments.c.payment_date >= filters.from_date)

        if filters.to_date:
            conditions.append(payments.c.payment_date <= filters.to_date)

        stmt = _PAYMENT_WITH_APPOINTMENT.where(and_(true(), *conditions)).order_by(
            payments.c.payment_date.desc(),
            payments.c.created_at.desc(),
        )
        rows = (await self._execute(stmt)).fetchall()
        return [_to_payment(row) for row in rows]

    @staticmethod
    def _scope(user: AuthenticatedUser, **kwargs: Any) -> PaymentFilters:
        if user.role == UserRole.PATIENT:
            return PaymentFilters(patient_id=user.id, **kwargs)
        if user.role == UserRole.DOCTOR:
            return PaymentFilters(doctor_id=user.id, **kwargs)
        return PaymentFilters(**kwargs)

    async def get_reconciled_payments(
        self,
        user: AuthenticatedUser,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[ReconciledPayment]:
        """Reconciled payment history for the caller's patient or doctor view."""
        rows = await self.list_payments(self._scope(user, from_date=from_date, to_date=to_date))
        return reconcile_payments(rows)

    async def get_monthly_summary(
        self,
        user: AuthenticatedUser,
        year: int,
        month: int,
    ) -> MonthlySummary:
        """
        Monthly totals for the caller.

        The whole history is reconciled first so that refunds dated in a
        later month still pair with their original payment.
        """
        entries = await self.get_reconciled_payments(user)
        return summarize_month(entries, year, month)

    async def get_payment(
        self,
        payment_id: UUID,
        user: AuthenticatedUser,
    ) -> PaymentResponse:
        """
        Get a payment by ID.

        Raises:
            NotFoundException: If payment not found
            ForbiddenException: If the caller is not a party to it
        """
        stmt = _PAYMENT_WITH_APPOINTMENT.where(payments.c.id == payment_id)
        row = (await self._execute(stmt)).fetchone()

        if not row:
            raise NotFoundException("Payment not found")

        payment = _to_payment(row)
        if user.is_admin:
            return payment
        if user.role == UserRole.PATIENT and payment.patient_id == user.id:
            return payment
        if (
            user.role == UserRole.DOCTOR
            and payment.appointment is not None
            and payment.appointment.doctor_id == user.id
        ):
            return payment

        raise ForbiddenException("Access denied to this payment")
