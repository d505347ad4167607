"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    code = "error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def extra(self) -> dict[str, Any]:
        """Additional fields rendered in the error body."""
        return {}


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    code = "bad_request"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class InvalidStateException(AppException):
    """Operation not valid for the resource's current status."""

    code = "invalid_state"

    def __init__(self, message: str = "Operation not allowed in the current state"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class PolicyViolationException(AppException):
    """Operation attempted outside its permitted time window."""

    code = "policy_violation"

    def __init__(self, message: str = "Outside the permitted time window", permitted: str = "none"):
        """Initialize with 422 status code and the actions still permitted."""
        self.permitted = permitted
        super().__init__(message, status_code=422)

    def extra(self) -> dict[str, Any]:
        """Expose which actions remain available."""
        return {"permitted": self.permitted}


class PersistenceFailureException(AppException):
    """Backing store failed or timed out; no state was changed."""

    code = "persistence_failure"

    def __init__(self, message: str = "Storage temporarily unavailable, please retry"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class ConflictException(AppException):
    """Conflict exception."""

    code = "conflict"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)
