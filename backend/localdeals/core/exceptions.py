"""Custom exception classes for the application.

Every exception here carries the HTTP status it maps to. Messages are
written to be shown to clients as-is.
"""


class LocalDealsException(Exception):
    """Base exception for all LocalDeals errors."""

    status_code: int = 500

    def __init__(self, message: str = "An unexpected error occurred", status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(LocalDealsException):
    """Raised when request input is missing or malformed."""

    status_code = 400


class UnauthorizedError(LocalDealsException):
    """Raised when no usable identity is attached to the request."""

    status_code = 401


class ForbiddenError(LocalDealsException):
    """Raised when the caller is known but not allowed to do this."""

    status_code = 403


class NotFoundError(LocalDealsException):
    """Raised when a requested resource is not found."""

    status_code = 404

    def __init__(self, resource: str, identifier: str | None = None):
        if identifier is None:
            super().__init__(f"{resource} not found")
        else:
            super().__init__(f"{resource} with identifier '{identifier}' not found")


class ConflictError(LocalDealsException):
    """Raised when a write collides with an existing row."""

    status_code = 409


class RateLimitError(LocalDealsException):
    """Raised when a caller exceeds a request quota."""

    status_code = 429


class AuthError(LocalDealsException):
    """Authentication/authorization failure with an explicit status.

    401 for missing or invalid identity, 403 for an insufficient role,
    404 when the identity does not map to a user row.
    """

    status_code = 401

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, status_code)
