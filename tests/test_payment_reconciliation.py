"""Tests for payment reconciliation and monthly totals."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from telehealth.schemas.payments import PaymentResponse, ReconciledPayment
from telehealth.services.payment_reconciliation import (
    is_refund_payment,
    reconcile_payments,
    summarize_month,
)

JUNE = datetime(2025, 6, 5, 10, 0)


def payment(amount: str, status: str = "completed", **kwargs) -> PaymentResponse:
    """Build a payment with sensible defaults."""
    kwargs.setdefault("id", uuid4())
    kwargs.setdefault("appointment_id", uuid4())
    kwargs.setdefault("payment_date", JUNE)
    return PaymentResponse(amount=Decimal(amount), status=status, **kwargs)


def test_refund_is_folded_into_its_original():
    """A refunded payment carries its refund and the refund row disappears."""
    appointment_id = uuid4()
    original = payment("100.00", "refunded", appointment_id=appointment_id)
    refund = payment("-80.00", appointment_id=appointment_id, is_refund=True)

    result = reconcile_payments([original, refund])

    assert len(result) == 1
    assert result[0].id == original.id
    assert result[0].is_combined is True
    assert result[0].refund_details is not None
    assert result[0].refund_details.amount == Decimal("-80.00")


def test_output_drops_exactly_the_refund_rows():
    """N payments with one refund pair reconcile to N-1 entries."""
    appointment_id = uuid4()
    rows = [
        payment("50.00"),
        payment("100.00", "refunded", appointment_id=appointment_id),
        payment("75.00"),
        payment("-80.00", appointment_id=appointment_id, is_refund=True),
        payment("20.00", "pending"),
    ]

    result = reconcile_payments(rows)

    assert len(result) == len(rows) - 1
    combined = [entry for entry in result if entry.is_combined]
    assert len(combined) == 1
    assert combined[0].appointment_id == appointment_id


def test_order_is_preserved():
    rows = [payment("10.00"), payment("20.00"), payment("30.00")]
    assert [entry.id for entry in reconcile_payments(rows)] == [row.id for row in rows]


def test_reconciliation_is_idempotent_and_pure():
    """Running twice on the same input gives the same output and leaves input untouched."""
    appointment_id = uuid4()
    rows = [
        payment("100.00", "refunded", appointment_id=appointment_id),
        payment("-80.00", appointment_id=appointment_id, is_refund=True),
        payment("60.00"),
    ]
    snapshot = [row.model_dump() for row in rows]

    first = reconcile_payments(rows)
    second = reconcile_payments(rows)

    assert [entry.model_dump() for entry in first] == [entry.model_dump() for entry in second]
    assert [row.model_dump() for row in rows] == snapshot


def test_negative_amount_counts_as_refund_without_flag():
    """Negative amounts are refunds even when the flag is missing."""
    appointment_id = uuid4()
    original = payment("100.00", "refunded", appointment_id=appointment_id)
    refund = payment("-80.00", appointment_id=appointment_id)

    assert is_refund_payment(refund)
    result = reconcile_payments([refund, original])

    assert len(result) == 1
    assert result[0].refund_details.id == refund.id


def test_refunded_status_without_refund_row_passes_through():
    """An orphaned refunded payment is left as-is."""
    orphan = payment("100.00", "refunded")

    result = reconcile_payments([orphan])

    assert len(result) == 1
    assert result[0].refund_details is None
    assert result[0].is_combined is False


def test_completed_payment_is_not_paired_with_refund():
    """Only refunded-status payments get refund details attached."""
    appointment_id = uuid4()
    original = payment("100.00", "completed", appointment_id=appointment_id)
    refund = payment("-80.00", appointment_id=appointment_id, is_refund=True)

    result = reconcile_payments([original, refund])

    assert len(result) == 1
    assert result[0].refund_details is None


def test_refund_without_appointment_is_dropped_and_unpaired():
    """A refund that cannot be matched is still never shown on its own."""
    original = payment("100.00", "refunded")
    stray = payment("-80.00", appointment_id=None, is_refund=True)

    result = reconcile_payments([original, stray])

    assert [entry.id for entry in result] == [original.id]
    assert result[0].refund_details is None


def test_payment_without_appointment_passes_through():
    loose = payment("40.00", appointment_id=None)
    result = reconcile_payments([loose])
    assert result[0].id == loose.id


def test_duplicate_refunds_keep_the_last_one():
    """Legacy data with two refunds pairs the later one and hides both."""
    appointment_id = uuid4()
    original = payment("100.00", "refunded", appointment_id=appointment_id)
    first = payment("-50.00", appointment_id=appointment_id, is_refund=True)
    second = payment("-80.00", appointment_id=appointment_id, is_refund=True)

    result = reconcile_payments([original, first, second])

    assert len(result) == 1
    assert result[0].refund_details.id == second.id


def test_empty_input():
    assert reconcile_payments([]) == []


def _reconciled_month() -> list[ReconciledPayment]:
    appointment_id = uuid4()
    return reconcile_payments(
        [
            payment("100.00", "refunded", appointment_id=appointment_id),
            payment(
                "-80.00",
                appointment_id=appointment_id,
                is_refund=True,
                payment_date=datetime(2025, 7, 2),
            ),
            payment("60.00"),
            payment("30.00", "pending"),
            payment("45.00", "failed"),
            payment("200.00", payment_date=datetime(2025, 5, 31, 23, 0)),
        ]
    )


def test_monthly_summary_totals():
    """Refunded payments count gross, refund and penalty; others count gross only."""
    summary = summarize_month(_reconciled_month(), 2025, 6)

    assert summary.total_gross == Decimal("160.00")
    assert summary.total_refunded == Decimal("80.00")
    assert summary.total_penalty == Decimal("20.00")
    assert summary.net_amount == Decimal("80.00")
    assert summary.payment_count == 2
    assert summary.refund_count == 1
    assert summary.month_label == "June 2025"


def test_monthly_summary_other_month():
    summary = summarize_month(_reconciled_month(), 2025, 5)

    assert summary.total_gross == Decimal("200.00")
    assert summary.total_refunded == Decimal("0.00")
    assert summary.net_amount == Decimal("200.00")
    assert summary.payment_count == 1
    assert summary.refund_count == 0
    assert summary.month_label == "May 2025"


def test_monthly_summary_ignores_stray_refund_rows():
    """Refund rows fed in directly are not counted a second time."""
    entries = [
        ReconciledPayment(**payment("-80.00", is_refund=True).model_dump()),
        ReconciledPayment(**payment("-15.00").model_dump()),
    ]

    summary = summarize_month(entries, 2025, 6)

    assert summary.total_gross == Decimal("0.00")
    assert summary.total_refunded == Decimal("0.00")
    assert summary.payment_count == 0


def test_monthly_summary_skips_undated_entries():
    entries = reconcile_payments([payment("10.00", payment_date=None)])
    assert summarize_month(entries, 2025, 6).payment_count == 0


def test_empty_month():
    summary = summarize_month([], 2024, 2)
    assert summary.total_gross == Decimal("0.00")
    assert summary.month_label == "February 2024"


def test_month_label_uses_english_names():
    """Labels do not depend on the process locale."""
    assert summarize_month([], 2024, 12).month_label == "December 2024"
    assert summarize_month([], 2025, 1).month_label == "January 2025"


def test_invalid_month_is_rejected():
    with pytest.raises(ValueError):
        summarize_month([], 2025, 13)
