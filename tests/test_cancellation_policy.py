"""Tests for the deadline policy and the refund split."""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from telehealth.schemas.appointments import PermittedActions
from telehealth.services.cancellation_policy import (
    calculate_refund,
    deadlines_for,
    evaluate_deadline_policy,
)

APPOINTMENT = date(2025, 6, 10)


def test_three_days_before_allows_cancel_and_reschedule():
    """Cancel and reschedule are both open three days ahead."""
    permitted = evaluate_deadline_policy(APPOINTMENT, datetime(2025, 6, 7, 12, 0, tzinfo=UTC))
    assert permitted is PermittedActions.CANCEL_AND_RESCHEDULE
    assert permitted.can_cancel
    assert permitted.can_reschedule


def test_cancel_deadline_day_is_inclusive():
    """The last cancel day still allows cancelling, even late in the day."""
    permitted = evaluate_deadline_policy(APPOINTMENT, datetime(2025, 6, 8, 23, 59))
    assert permitted is PermittedActions.CANCEL_AND_RESCHEDULE


def test_one_day_before_allows_reschedule_only():
    """Only rescheduling remains the day before."""
    permitted = evaluate_deadline_policy(APPOINTMENT, datetime(2025, 6, 9, 8, 0))
    assert permitted is PermittedActions.RESCHEDULE_ONLY
    assert not permitted.can_cancel
    assert permitted.can_reschedule


def test_same_day_allows_nothing():
    """Nothing is permitted on the appointment day."""
    permitted = evaluate_deadline_policy(APPOINTMENT, datetime(2025, 6, 10, 0, 1))
    assert permitted is PermittedActions.NONE
    assert not permitted.can_cancel
    assert not permitted.can_reschedule


def test_after_appointment_allows_nothing():
    assert evaluate_deadline_policy(APPOINTMENT, datetime(2025, 7, 1)) is PermittedActions.NONE


def test_accepts_iso_strings_and_datetimes():
    """String and datetime appointment dates are truncated to the day."""
    assert (
        evaluate_deadline_policy("2025-06-10", "2025-06-07T10:00:00")
        is PermittedActions.CANCEL_AND_RESCHEDULE
    )
    assert (
        evaluate_deadline_policy(datetime(2025, 6, 10, 18, 30), date(2025, 6, 9))
        is PermittedActions.RESCHEDULE_ONLY
    )


@pytest.mark.parametrize(
    "appointment_date,now",
    [
        ("not-a-date", datetime(2025, 6, 1)),
        (None, datetime(2025, 6, 1)),
        (APPOINTMENT, None),
        (12345, datetime(2025, 6, 1)),
        ("2025-13-45", datetime(2025, 6, 1)),
    ],
)
def test_unparseable_input_fails_closed(appointment_date, now):
    """Bad input denies every action instead of raising."""
    assert evaluate_deadline_policy(appointment_date, now) is PermittedActions.NONE


def test_permissions_only_shrink_as_time_advances():
    """Walking towards the appointment never re-opens an action."""
    rank = {
        PermittedActions.CANCEL_AND_RESCHEDULE: 2,
        PermittedActions.RESCHEDULE_ONLY: 1,
        PermittedActions.NONE: 0,
    }
    start = datetime(2025, 5, 20, tzinfo=UTC)
    previous = 2
    for hours in range(0, 24 * 25, 5):
        current = rank[evaluate_deadline_policy(APPOINTMENT, start + timedelta(hours=hours))]
        assert current <= previous
        previous = current


def test_deadlines_for():
    deadlines = deadlines_for(APPOINTMENT)
    assert deadlines.cancel == date(2025, 6, 8)
    assert deadlines.reschedule == date(2025, 6, 9)


def test_refund_of_one_hundred():
    """A 100.00 payment refunds 80.00 and retains 20.00."""
    split = calculate_refund(Decimal("100.00"))
    assert split.refund_amount == Decimal("80.00")
    assert split.penalty_amount == Decimal("20.00")


@pytest.mark.parametrize(
    "paid,refund,penalty",
    [
        ("0.00", "0.00", "0.00"),
        ("0.01", "0.01", "0.00"),
        ("0.03", "0.02", "0.01"),
        ("10.01", "8.01", "2.00"),
        ("49.99", "39.99", "10.00"),
        ("0.05", "0.04", "0.01"),
        ("0.07", "0.06", "0.01"),
    ],
)
def test_refund_rounds_half_up(paid, refund, penalty):
    split = calculate_refund(paid)
    assert split.refund_amount == Decimal(refund)
    assert split.penalty_amount == Decimal(penalty)


def test_refund_and_penalty_always_sum_to_paid_amount():
    """The split never loses or creates a cent."""
    for cents in range(0, 100_000, 7):
        paid = Decimal(cents) / 100
        split = calculate_refund(paid)
        assert split.refund_amount + split.penalty_amount == paid
        assert split.penalty_amount >= 0


def test_refund_accepts_floats_and_ints():
    assert calculate_refund(100).refund_amount == Decimal("80.00")
    assert calculate_refund(12.5).penalty_amount == Decimal("2.50")


@pytest.mark.parametrize("bad", [Decimal("-1.00"), "abc", float("nan"), float("inf")])
def test_refund_rejects_invalid_amounts(bad):
    with pytest.raises(ValueError):
        calculate_refund(bad)
