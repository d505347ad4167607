"""Appointments table model using SQLAlchemy Core."""

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
)

# Metadata for all tables
metadata = MetaData()

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid.uuid4),
    # Ownership / references
    Column("patient_id", Uuid, nullable=False),
    Column("doctor_id", Uuid, nullable=False),
    # Slot (calendar date of the availability plus HH:MM bounds)
    Column("availability_date", Date, nullable=False),
    Column("slot_start", String(5), nullable=False),
    Column("slot_end", String(5), nullable=False),
    Column("duration_minutes", Integer, nullable=False, server_default="30"),
    Column("price", Numeric(10, 2), nullable=False),
    # Status management
    Column("status", Text, nullable=False, server_default="pending"),
    Column("payment_status", Text, nullable=False, server_default="pending"),
    Column("case_details", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'scheduled', 'completed', 'cancelled', 'rescheduled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'completed', 'refunded')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint("price >= 0", name="appointments_price_check"),
    # refunded implies cancelled
    CheckConstraint(
        "payment_status <> 'refunded' OR status = 'cancelled'",
        name="appointments_refund_cancelled_check",
    ),
    Index("idx_appointments_patient_created", "patient_id", "created_at"),
    Index("idx_appointments_doctor_created", "doctor_id", "created_at"),
)
