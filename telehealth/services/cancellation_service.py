"""Cancellation and rescheduling workflow."""

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, insert, select, update
from sqlalchemy.exc import IntegrityError

from telehealth.core.exceptions import InvalidStateException, PolicyViolationException
from telehealth.models.payments import payments
from telehealth.schemas.appointments import (
    AppointmentPaymentStatus,
    AppointmentResponse,
    AppointmentStatus,
    CancellationResponse,
    PermittedActions,
    RefundBreakdown,
    RescheduleResponse,
)
from telehealth.schemas.auth import AuthenticatedUser
from telehealth.schemas.payments import PaymentStatus
from telehealth.services.appointment_service import ACTIVE_STATUSES, AppointmentService
from telehealth.services.cancellation_policy import (
    RefundSplit,
    calculate_refund,
    deadlines_for,
    evaluate_deadline_policy,
)

logger = structlog.get_logger()


def _policy_message(action: str, permitted: PermittedActions) -> str:
    if permitted is PermittedActions.RESCHEDULE_ONLY:
        return (
            f"The {action} deadline has passed; the appointment can still be rescheduled "
            "up to one day before"
        )
    return "The appointment can no longer be cancelled or rescheduled"


class CancellationService(AppointmentService):
    """Service applying the deadline policy and refund split to appointments."""

    async def cancel(
        self,
        appointment_id: UUID,
        now: datetime,
        user: AuthenticatedUser | None = None,
    ) -> CancellationResponse:
        """
        Cancel an appointment and refund 80% of a captured payment.

        The status change, the refund row and the payment status flips are
        committed together or not at all.

        Args:
            appointment_id: Appointment ID
            now: Current instant
            user: Caller, checked against the appointment's parties

        Returns:
            Updated appointment and the refund breakdown when a refund was made

        Raises:
            NotFoundException: If appointment not found
            InvalidStateException: If already cancelled/completed or changed concurrently
            PolicyViolationException: If the cancel deadline has passed
            PersistenceFailureException: If the store fails; nothing is changed
        """
        row = await self.get_appointment_row(appointment_id)
        self._ensure_access(row, user)

        current = AppointmentStatus(row.status)
        if current not in ACTIVE_STATUSES:
            raise InvalidStateException(f"Appointment is {current.value} and cannot be cancelled")

        permitted = evaluate_deadline_policy(row.availability_date, now)
        if not permitted.can_cancel:
            logger.info(
                "cancellation_rejected",
                appointment_id=str(appointment_id),
                permitted=permitted.value,
            )
            raise PolicyViolationException(_policy_message("cancellation", permitted), permitted.value)

        paid = row.payment_status == AppointmentPaymentStatus.COMPLETED.value
        split: RefundSplit | None = None

        try:
            updated = await self.transition_status(
                appointment_id,
                AppointmentStatus.CANCELLED,
                current,
                now,
                cancelled_at=now,
                payment_status=(
                    AppointmentPaymentStatus.REFUNDED.value if paid else row.payment_status
                ),
            )
            if paid:
                split = calculate_refund(row.price)
                await self._record_refund(row, split, now)
            await self._commit()
        except IntegrityError as e:
            logger.warning(
                "duplicate_refund_rejected",
                appointment_id=str(appointment_id),
                error=str(e.orig),
            )
            raise InvalidStateException(
                "A refund has already been recorded for this appointment"
            ) from e

        logger.info(
            "appointment_cancelled",
            appointment_id=str(appointment_id),
            refunded=paid,
            refund_amount=str(split.refund_amount) if split else None,
            penalty_amount=str(split.penalty_amount) if split else None,
        )

        return CancellationResponse(
            appointment=AppointmentResponse.model_validate(dict(updated._mapping)),
            refund=(
                RefundBreakdown(
                    refund_amount=split.refund_amount,
                    penalty_amount=split.penalty_amount,
                )
                if split
                else None
            ),
        )

    async def _record_refund(self, appointment_row, split: RefundSplit, now: datetime) -> None:
        """Flip the original payment to refunded and append the refund row. Does not commit."""
        original_stmt = select(payments).where(
            and_(
                payments.c.appointment_id == appointment_row.id,
                payments.c.is_refund.is_(False),
            )
        )
        original = (await self._execute(original_stmt)).fetchone()

        transaction_id = None
        method = "card"
        if original is not None:
            await self._execute(
                update(payments)
                .where(payments.c.id == original.id)
                .values(status=PaymentStatus.REFUNDED.value, updated_at=now)
            )
            transaction_id = f"refund_{original.transaction_id or original.id}"
            method = original.method

        await self._execute(
            insert(payments).values(
                appointment_id=appointment_row.id,
                patient_id=appointment_row.patient_id,
                amount=-split.refund_amount,
                method=method,
                status=PaymentStatus.COMPLETED.value,
                transaction_id=transaction_id,
                is_refund=True,
                payment_date=now,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "refund_recorded",
            appointment_id=str(appointment_row.id),
            refund_amount=str(split.refund_amount),
            penalty_amount=str(split.penalty_amount),
        )

    async def reschedule(
        self,
        appointment_id: UUID,
        now: datetime,
        user: AuthenticatedUser | None = None,
    ) -> RescheduleResponse:
        """
        Check that an appointment may be rescheduled at ``now``.

        The appointment is not modified; the patient re-books a new slot.

        Raises:
            NotFoundException: If appointment not found
            InvalidStateException: If the appointment is no longer active
            PolicyViolationException: If the reschedule deadline has passed
        """
        row = await self.get_appointment_row(appointment_id)
        self._ensure_access(row, user)

        current = AppointmentStatus(row.status)
        if current not in ACTIVE_STATUSES:
            raise InvalidStateException(f"Appointment is {current.value} and cannot be rescheduled")

        permitted = evaluate_deadline_policy(row.availability_date, now)
        if not permitted.can_reschedule:
            logger.info(
                "reschedule_rejected",
                appointment_id=str(appointment_id),
                permitted=permitted.value,
            )
            raise PolicyViolationException(_policy_message("reschedule", permitted), permitted.value)

        return RescheduleResponse(
            appointment=AppointmentResponse.model_validate(dict(row._mapping)),
            permitted=permitted,
            reschedule_deadline=deadlines_for(row.availability_date).reschedule,
        )
