"""Payment reconciliation and monthly totals.

Patient and doctor payment views both read through these functions, so refund
detection and totals stay identical across views.
"""

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

import structlog

from telehealth.schemas.payments import (
    MonthlySummary,
    PaymentResponse,
    PaymentStatus,
    ReconciledPayment,
)

logger = structlog.get_logger()

ZERO = Decimal("0.00")

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def is_refund_payment(payment: PaymentResponse) -> bool:
    """A payment is a refund when flagged as one or when its amount is negative."""
    return bool(payment.is_refund) or payment.amount < 0


def reconcile_payments(payments: Sequence[PaymentResponse]) -> list[ReconciledPayment]:
    """
    Pair refunded payments with their refund transactions.

    Refund rows never appear on their own. A payment whose status is
    ``refunded`` and whose appointment has a refund row gets that row as
    ``refund_details`` and ``is_combined = True``. Everything else passes
    through unchanged, in input order.

    Args:
        payments: All transactions for one patient or doctor

    Returns:
        Display list with ``len(payments) - number_of_refunds`` entries
    """
    refunds_by_appointment: dict[UUID, PaymentResponse] = {}
    refund_ids: set[UUID] = set()

    for payment in payments:
        if not is_refund_payment(payment):
            continue
        refund_ids.add(payment.id)
        if payment.appointment_id is None:
            continue
        if payment.appointment_id in refunds_by_appointment:
            # Writes reject a second refund; older data may still hold one.
            logger.warning(
                "duplicate_refund_for_appointment",
                appointment_id=str(payment.appointment_id),
                kept_refund_id=str(payment.id),
                dropped_refund_id=str(refunds_by_appointment[payment.appointment_id].id),
            )
        refunds_by_appointment[payment.appointment_id] = payment

    reconciled: list[ReconciledPayment] = []
    for payment in payments:
        if payment.id in refund_ids:
            continue

        entry = ReconciledPayment(**payment.model_dump())
        refund = (
            refunds_by_appointment.get(payment.appointment_id)
            if payment.appointment_id is not None
            else None
        )
        if payment.status == PaymentStatus.REFUNDED and refund is not None:
            entry.refund_details = refund.model_copy(deep=True)
            entry.is_combined = True
        reconciled.append(entry)

    return reconciled


def _in_month(entry: PaymentResponse, year: int, month: int) -> bool:
    if entry.payment_date is None:
        return False
    return entry.payment_date.year == year and entry.payment_date.month == month


def summarize_month(
    entries: Iterable[ReconciledPayment],
    year: int,
    month: int,
) -> MonthlySummary:
    """
    Aggregate reconciled payments dated within one calendar month.

    Args:
        entries: Output of ``reconcile_payments``
        year: Reference year
        month: Reference month (1-12)

    Returns:
        Gross, refunded, penalty and net totals for the month
    """
    first_day = date(year, month, 1)
    label = f"{MONTH_NAMES[first_day.month - 1]} {first_day.year}"

    total_gross = ZERO
    total_refunded = ZERO
    total_penalty = ZERO
    payment_count = 0
    refund_count = 0

    for entry in entries:
        if not _in_month(entry, year, month):
            continue

        if entry.refund_details is not None:
            refunded = abs(entry.refund_details.amount)
            total_gross += entry.amount
            total_refunded += refunded
            total_penalty += entry.amount - refunded
            refund_count += 1
            payment_count += 1
        elif is_refund_payment(entry):
            # Counted through its paired original
            continue
        elif entry.status == PaymentStatus.COMPLETED:
            total_gross += entry.amount
            payment_count += 1

    return MonthlySummary(
        total_gross=total_gross,
        total_refunded=total_refunded,
        total_penalty=total_penalty,
        net_amount=total_gross - total_refunded,
        payment_count=payment_count,
        refund_count=refund_count,
        month_label=label,
    )
