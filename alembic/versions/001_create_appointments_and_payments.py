"""Create appointments and payments tables.

Revision ID: 001
Revises:
Create Date: 2025-06-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("doctor_id", sa.Uuid(), nullable=False),
        sa.Column("availability_date", sa.Date(), nullable=False),
        sa.Column("slot_start", sa.String(length=5), nullable=False),
        sa.Column("slot_end", sa.String(length=5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), server_default="30", nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("payment_status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("case_details", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'scheduled', 'completed', 'cancelled', 'rescheduled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'refunded')",
            name="appointments_payment_status_check",
        ),
        sa.CheckConstraint("price >= 0", name="appointments_price_check"),
        sa.CheckConstraint(
            "payment_status <> 'refunded' OR status = 'cancelled'",
            name="appointments_refund_cancelled_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_appointments_patient_created", "appointments", ["patient_id", "created_at"]
    )
    op.create_index("idx_appointments_doctor_created", "appointments", ["doctor_id", "created_at"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("appointment_id", sa.Uuid(), nullable=True),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("method", sa.Text(), server_default="card", nullable=False),
        sa.Column("status", sa.Text(), server_default="completed", nullable=False),
        sa.Column("transaction_id", sa.Text(), nullable=True),
        sa.Column("is_refund", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "payment_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'refunded', 'failed')",
            name="payments_status_check",
        ),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id", "is_refund", name="uq_payments_appointment_refund"),
    )
    op.create_index("idx_payments_patient_date", "payments", ["patient_id", "payment_date"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_payments_patient_date", table_name="payments")
    op.drop_table("payments")
    op.drop_index("idx_appointments_doctor_created", table_name="appointments")
    op.drop_index("idx_appointments_patient_created", table_name="appointments")
    op.drop_table("appointments")
