"""Authentication schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Role carried in the access token."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class AuthenticatedUser(BaseModel):
    """Caller identity decoded from a bearer token."""

    id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        """Check if the caller is an administrator."""
        return self.role == UserRole.ADMIN
