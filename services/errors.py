"""
Service-level error taxonomy.

Services raise these instead of HTTPException so they can be called outside a
request; main.py maps them onto HTTP responses with the same {"detail": ...}
body that HTTPException produces.
"""

from fastapi import status


class ServiceError(Exception):
    """Base class for errors that are reported to the caller with a readable message."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InsufficientBalance(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Insufficient points for withdrawal"


class Unauthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ServiceError):
    # Every role failure uses the same message so responses don't reveal roles.
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"

    def __init__(self, message: str = None):
        super().__init__(self.default_message)


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidState(ServiceError):
    """The operation is not allowed in the resource's current state."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation not allowed in current state"


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"
