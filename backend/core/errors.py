"""Error types raised by the authentication flows.

Every error carries the HTTP status it is rendered with, so routes can let
them propagate and the application handler turns them into
``{"error": message}`` responses.
"""

from fastapi import status


class AuthServiceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthServiceError):
    """Missing or malformed request input."""
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidToken(AuthServiceError):
    """Password reset token is wrong or has expired."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AuthServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(AuthServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AuthServiceError):
    status_code = status.HTTP_409_CONFLICT


class InternalError(AuthServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class EmailDeliveryError(AuthServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
