"""
Error taxonomy for availability resolution and booking.

Every error is raised synchronously from the failing operation. Routes translate
them into HTTP responses with ``scheduling_error_to_http``.
"""
from fastapi import HTTPException, status


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling core."""


class ValidationError(SchedulingError, ValueError):
    """Malformed weekly slot, date, time or slot duration."""


class SlotConflict(SchedulingError):
    """The requested start time is no longer free for that professional."""

    def __init__(self, professional_id: str, message: str | None = None):
        self.professional_id = professional_id
        super().__init__(message or 'This time is no longer available. Please choose another.')


class PersistenceError(SchedulingError):
    """The backing store could not be read or written."""


class NotFoundError(SchedulingError, LookupError):
    pass


MSG_DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'

SCHEDULING_ERROR_STATUS: list[tuple[type[SchedulingError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (SlotConflict, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def scheduling_error_to_http(exc: SchedulingError) -> HTTPException:
    """Map a scheduling error to an HTTPException; first matching class wins."""
    for error_class, status_code in SCHEDULING_ERROR_STATUS:
        if isinstance(exc, error_class):
            detail = MSG_DATABASE_UNAVAILABLE if error_class is PersistenceError else str(exc)
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
