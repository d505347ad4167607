"""Shared backing-store access for services."""

from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from telehealth.core.exceptions import ForbiddenException, PersistenceFailureException
from telehealth.database import bounded
from telehealth.schemas.auth import AuthenticatedUser, UserRole

logger = structlog.get_logger()


class BaseService:
    """Base class holding the session and the bounded store calls."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _execute(self, stmt: Any) -> Any:
        """
        Execute a statement within the configured time bound.

        Integrity errors propagate so callers can map them to domain errors.
        Any other driver error or a timeout rolls back and becomes
        PersistenceFailureException.
        """
        try:
            return await bounded(self.db.execute(stmt))
        except IntegrityError:
            await self.db.rollback()
            raise
        except (SQLAlchemyError, TimeoutError) as e:
            await self._fail(e)

    async def _commit(self) -> None:
        """Commit the current transaction within the configured time bound."""
        try:
            await bounded(self.db.commit())
        except IntegrityError:
            await self.db.rollback()
            raise
        except (SQLAlchemyError, TimeoutError) as e:
            await self._fail(e)

    async def _fail(self, error: Exception) -> None:
        logger.error(
            "persistence_failure",
            service=self.__class__.__name__,
            error=str(error) or error.__class__.__name__,
        )
        await self.db.rollback()
        raise PersistenceFailureException() from error

    @staticmethod
    def _ensure_access(row: Any, user: AuthenticatedUser | None) -> None:
        """
        Check the caller is a party to the appointment.

        Raises:
            ForbiddenException: If the caller is neither its patient nor doctor
        """
        if user is None or user.is_admin:
            return
        if user.role == UserRole.PATIENT and row.patient_id == user.id:
            return
        if user.role == UserRole.DOCTOR and row.doctor_id == user.id:
            return
        raise ForbiddenException("Access denied to this appointment")
