"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class AppointmentPaymentStatus(str, Enum):
    """Payment state tracked on the appointment."""

    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PermittedActions(str, Enum):
    """What the deadline policy allows at a given instant."""

    CANCEL_AND_RESCHEDULE = "cancel_and_reschedule"
    RESCHEDULE_ONLY = "reschedule_only"
    NONE = "none"

    @property
    def can_cancel(self) -> bool:
        """Cancellation is allowed."""
        return self is PermittedActions.CANCEL_AND_RESCHEDULE

    @property
    def can_reschedule(self) -> bool:
        """Rescheduling is allowed."""
        return self is not PermittedActions.NONE


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    doctor_id: UUID
    availability_date: date
    slot_start: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    slot_end: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    duration_minutes: int = Field(default=30, ge=1, le=480)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    case_details: str | None = Field(None, max_length=2000)

    @field_validator("slot_end")
    @classmethod
    def validate_slot_end(cls, v: str, info: Any) -> str:
        """Validate the slot ends after it starts."""
        start = info.data.get("slot_start")
        if start and v <= start:
            raise ValueError("Slot end must be after slot start")
        return v


class AppointmentCreate(AppointmentBase):
    """Schema for booking a new appointment."""


class AppointmentStatusUpdate(BaseModel):
    """Schema for a doctor-driven status transition."""

    status: AppointmentStatus


class AppointmentResponse(AppointmentBase):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    status: AppointmentStatus
    payment_status: AppointmentPaymentStatus
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class AppointmentActionsResponse(BaseModel):
    """Actions the deadline policy currently permits for an appointment."""

    appointment_id: UUID
    permitted: PermittedActions
    can_cancel: bool
    can_reschedule: bool
    cancel_deadline: date
    reschedule_deadline: date


class RefundBreakdown(BaseModel):
    """Split of a cancelled payment between patient and doctor."""

    refund_amount: Decimal
    penalty_amount: Decimal


class CancellationResponse(BaseModel):
    """Result of a successful cancellation."""

    status: str = "ok"
    appointment: AppointmentResponse
    refund: RefundBreakdown | None = None


class RescheduleResponse(BaseModel):
    """Result of a reschedule eligibility check."""

    status: str = "ok"
    appointment: AppointmentResponse
    permitted: PermittedActions
    reschedule_deadline: date


class CleanupRequest(BaseModel):
    """Schema for releasing stale unpaid bookings."""

    minutes: int | None = Field(None, ge=1, le=7 * 24 * 60)


class CleanupResponse(BaseModel):
    """Number of bookings released."""

    processed: int
