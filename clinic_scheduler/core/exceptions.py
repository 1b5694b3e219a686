"""Application exceptions raised outside the scheduling core."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clinic_scheduler.scheduling.errors import SchedulingError


class AppException(Exception):
    """Base application exception."""

    code = "app_error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Holiday or other reference record missing."""

    code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Caller's role or relationship to the appointment does not allow the action."""

    code = "forbidden"

    def __init__(self, message: str = "Not allowed for this role"):
        super().__init__(message, status_code=403)


class ValidationException(AppException):
    """Input passed schema validation but breaks a record invariant."""

    code = "validation_error"

    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status_code=422)


class SchedulingException(AppException):
    """Carries a scheduling error value across the HTTP boundary."""

    def __init__(self, error: "SchedulingError"):
        """Initialize from the error value returned by the scheduling core."""
        self.error = error
        self.code = error.code
        super().__init__(error.message, status_code=error.status_code)
