"""Database models."""

from telehealth.models.appointments import appointments, metadata
from telehealth.models.payments import payments

__all__ = [
    "appointments",
    "metadata",
    "payments",
]
