"""Clinic API errors, each carrying the HTTP status it is reported with."""


class AppException(Exception):
    """Base for errors the API reports as a JSON body with a message."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """A referenced appointment, profile or catalog entry does not exist."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Bearer token is missing or fails verification."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Caller has the wrong role or no link to the requested record."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Request breaks a booking rule, such as a date in the past."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Write collides with existing state, such as a taken slot."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class InvalidTransitionException(ConflictException):
    """Appointment is not in a state that allows the requested change."""

    def __init__(self, message: str = "Transition not allowed"):
        """Initialize with 409 status code."""
        super().__init__(message)


class ValidationException(AppException):
    """Profile or clinical record data does not match its schema."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)
