"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ValidationException(AppException):
    """One or more booking fields failed validation."""

    def __init__(
        self,
        violations: dict[str, str],
        message: str = "Validation error",
    ):
        """Initialize with 422 status code and per-field violations."""
        self.violations = violations
        super().__init__(message, status_code=422)


class ConstraintConflictException(AppException):
    """A capacity or exclusivity rule rejected the booking at submission time."""

    def __init__(
        self,
        violations: dict[str, str],
        message: str = "The selected slot is no longer available",
    ):
        """Initialize with 409 status code and per-field violations."""
        self.violations = violations
        super().__init__(message, status_code=409)


class PersistenceError(AppException):
    """The data store could not complete a read or write."""

    def __init__(self, message: str = "The appointment store is unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
