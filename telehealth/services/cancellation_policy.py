"""Cancellation deadline policy and refund split.

Both functions are pure and cheap; callers evaluate them on every read
instead of storing the result.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import structlog

from telehealth.schemas.appointments import PermittedActions

logger = structlog.get_logger()

CANCEL_WINDOW_DAYS = 2
RESCHEDULE_WINDOW_DAYS = 1

REFUND_RATE = Decimal("0.80")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class Deadlines:
    """Last calendar days on which each action is allowed."""

    cancel: date
    reschedule: date


@dataclass(frozen=True)
class RefundSplit:
    """Refunded and retained parts of a paid amount."""

    refund_amount: Decimal
    penalty_amount: Decimal


def _to_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()).date()
    raise TypeError(f"Unsupported date value: {value!r}")


def deadlines_for(appointment_date: date | datetime | str) -> Deadlines:
    """
    Compute the cancel and reschedule deadlines for an appointment date.

    Args:
        appointment_date: Calendar date of the slot

    Returns:
        Deadlines for the appointment

    Raises:
        ValueError: If the date cannot be parsed
        TypeError: If the value is not a date-like object
    """
    day = _to_date(appointment_date)
    return Deadlines(
        cancel=day - timedelta(days=CANCEL_WINDOW_DAYS),
        reschedule=day - timedelta(days=RESCHEDULE_WINDOW_DAYS),
    )


def evaluate_deadline_policy(
    appointment_date: date | datetime | str | None,
    now: date | datetime | str | None,
) -> PermittedActions:
    """
    Decide which actions are permitted for an appointment at ``now``.

    Comparison is done on calendar days. Unparseable input yields
    ``PermittedActions.NONE`` rather than an error.

    Args:
        appointment_date: Calendar date of the slot
        now: Current instant

    Returns:
        Exactly one of the three permission levels
    """
    try:
        deadlines = deadlines_for(appointment_date)  # type: ignore[arg-type]
        today = _to_date(now)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(
            "deadline_policy_unparseable_input",
            appointment_date=repr(appointment_date),
            now=repr(now),
            error=str(e),
        )
        return PermittedActions.NONE

    if today <= deadlines.cancel:
        return PermittedActions.CANCEL_AND_RESCHEDULE
    if today <= deadlines.reschedule:
        return PermittedActions.RESCHEDULE_ONLY
    return PermittedActions.NONE


def round2(amount: Decimal) -> Decimal:
    """Round half up to cents."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_refund(paid_amount: Decimal | int | float | str) -> RefundSplit:
    """
    Split a paid amount into the refunded 80% and the retained 20% penalty.

    The penalty is the complement of the rounded refund, so the two parts
    always add back to the paid amount.

    Args:
        paid_amount: Non-negative amount that was captured

    Returns:
        Refund and penalty amounts

    Raises:
        ValueError: If the amount is negative or not a number
    """
    try:
        raw = Decimal(str(paid_amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid paid amount: {paid_amount!r}") from e

    if not raw.is_finite():
        raise ValueError(f"Invalid paid amount: {paid_amount!r}")

    paid = round2(raw)

    if paid < 0:
        raise ValueError("Paid amount must be non-negative")

    refund = round2(paid * REFUND_RATE)
    return RefundSplit(refund_amount=refund, penalty_amount=paid - refund)
