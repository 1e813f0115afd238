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


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class SlotUnavailableException(ConflictException):
    """The requested time slot was reserved by someone else."""

    def __init__(
        self,
        message: str = "This time slot was just taken. Please choose another one.",
    ):
        """Initialize with 409 status code."""
        super().__init__(message)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class PersistenceException(AppException):
    """The data store rejected a read or write."""

    def __init__(self, message: str = "Failed to save your booking. Please try again."):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class PaymentInitException(AppException):
    """The payment processor could not start a checkout."""

    def __init__(self, message: str = "Payment initialization failed"):
        """Initialize with 502 status code."""
        super().__init__(message, status_code=502)


class IdentityProviderException(AppException):
    """The hosted auth service rejected a request."""

    def __init__(self, message: str = "Authentication request failed", status_code: int = 400):
        """Initialize with the provider's status code (400 by default)."""
        super().__init__(message, status_code=status_code)
