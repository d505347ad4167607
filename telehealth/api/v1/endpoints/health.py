"""Health check endpoints."""

from decimal import Decimal

from fastapi import APIRouter, status
from pydantic import BaseModel

from telehealth.config import settings
from telehealth.database import database_latency_ms
from telehealth.services.cancellation_policy import (
    CANCEL_WINDOW_DAYS,
    REFUND_RATE,
    RESCHEDULE_WINDOW_DAYS,
)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class PolicySettings(BaseModel):
    """Cancellation policy the service is enforcing."""

    cancel_window_days: int
    reschedule_window_days: int
    refund_rate: Decimal
    pending_appointment_timeout_minutes: int


class DetailedHealthResponse(HealthResponse):
    """Detailed health check response model."""

    database: str
    database_latency_ms: float | None = None
    db_operation_timeout_seconds: float
    policy: PolicySettings


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Detailed health check with backing-store latency and the active policy.

    The database is unhealthy when it does not answer within
    DB_OPERATION_TIMEOUT_SECONDS, the same bound every booking call runs under.

    Returns:
        Health status including the backing store and policy settings
    """
    latency = await database_latency_ms()
    db_healthy = latency is not None

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        database_latency_ms=latency,
        db_operation_timeout_seconds=settings.db_operation_timeout_seconds,
        policy=PolicySettings(
            cancel_window_days=CANCEL_WINDOW_DAYS,
            reschedule_window_days=RESCHEDULE_WINDOW_DAYS,
            refund_rate=REFUND_RATE,
            pending_appointment_timeout_minutes=settings.pending_appointment_timeout_minutes,
        ),
    )
