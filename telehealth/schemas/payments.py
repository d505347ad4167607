"""Payment schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    """Payment method enumeration."""

    CARD = "card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"


class PaymentCreate(BaseModel):
    """Schema for capturing a payment for an appointment."""

    appointment_id: UUID
    method: PaymentMethod = PaymentMethod.CARD
    amount: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    transaction_id: str | None = Field(None, max_length=120)


class PaymentAppointmentContext(BaseModel):
    """Appointment fields joined onto a payment row."""

    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    availability_date: date | None = None
    slot_start: str | None = None
    slot_end: str | None = None
    status: str | None = None


class PaymentResponse(BaseModel):
    """Schema for a single payment or refund transaction."""

    id: UUID
    appointment_id: UUID | None = None
    patient_id: UUID | None = None
    amount: Decimal
    method: str | None = None
    status: PaymentStatus
    transaction_id: str | None = None
    is_refund: bool = False
    payment_date: datetime | None = None
    appointment: PaymentAppointmentContext | None = None

    model_config = {"from_attributes": True}


class ReconciledPayment(PaymentResponse):
    """A payment annotated with its paired refund, if any."""

    refund_details: PaymentResponse | None = None
    is_combined: bool = False


class PaymentFilters(BaseModel):
    """Schema for payment listing filters."""

    patient_id: UUID | None = None
    doctor_id: UUID | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None


class MonthlySummary(BaseModel):
    """Totals for one calendar month of reconciled payments."""

    total_gross: Decimal
    total_refunded: Decimal
    total_penalty: Decimal
    net_amount: Decimal
    payment_count: int
    refund_count: int
    month_label: str
