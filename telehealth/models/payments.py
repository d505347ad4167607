"""Payments table model using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
)

from telehealth.models.appointments import metadata

# Payment history is append-only: rows are status-transitioned, never deleted.
payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        nullable=True,
    ),
    Column("patient_id", Uuid, nullable=False),
    # Negative for refunds
    Column("amount", Numeric(10, 2), nullable=False),
    Column("method", Text, nullable=False, server_default="card"),
    Column("status", Text, nullable=False, server_default="completed"),
    Column("transaction_id", Text, nullable=True),
    Column("is_refund", Boolean, nullable=False, server_default=false()),
    Column("payment_date", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('pending', 'completed', 'refunded', 'failed')",
        name="payments_status_check",
    ),
    # One original payment and one refund per appointment
    UniqueConstraint("appointment_id", "is_refund", name="uq_payments_appointment_refund"),
    Index("idx_payments_patient_date", "patient_id", "payment_date"),
)
