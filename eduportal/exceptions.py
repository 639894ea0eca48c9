"""Domain errors raised by services and rendered by the API error handler."""
from fastapi import status


class EduPortalError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.__class__.__name__


class ValidationError(EduPortalError):
    """Missing or malformed input, rejected before any write."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


class NotFoundError(EduPortalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(EduPortalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed"


class ConflictError(EduPortalError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class AlreadyMarkedError(ConflictError):
    """A record already exists for this (session, student) pair."""

    default_message = "Attendance already marked for this session"


class SessionInactiveError(ConflictError):
    default_message = "This attendance session is no longer accepting check-ins"


class StorageUnavailableError(EduPortalError):
    """Transient database or object-store failure; the caller may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage temporarily unavailable, please retry"
