"""
Domain errors raised by the auth and messaging layers.

Each error carries the HTTP status it maps to and a message that is safe to
show to the client. main.py turns them into ``{"error": message}`` responses.
"""


class AppError(Exception):
    """Base class for errors that are translated into an HTTP response."""

    status_code: int = 500
    default_message: str = "internal_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(AppError):
    """Missing or malformed request fields."""

    status_code = 400
    default_message = "invalid input"


class UnauthorizedError(AppError):
    """Bad credentials, or a missing/invalid bearer token."""

    status_code = 401
    default_message = "unauthorized"


class ForbiddenError(AppError):
    """Wrong invite code, or access to another user's inbox."""

    status_code = 403
    default_message = "forbidden"


class ConflictError(AppError):
    """Phone number already registered."""

    status_code = 409
    default_message = "phone already registered"


class InternalError(AppError):
    """Unexpected storage or hashing failure. Details stay in the logs."""

    status_code = 500
