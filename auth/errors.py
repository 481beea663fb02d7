"""
auth/errors.py -- Domain exceptions for authentication, authorization and storage.

Each exception carries the HTTP status and machine-readable code the API layer
should answer with. api/main.py registers one handler for AppError that turns
any subclass into the standard {"error": {...}} envelope, so stores and
services raise domain errors without importing FastAPI.

Layer rule: stdlib only. No imports from api/, web/, or books/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto a client-facing HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


class ValidationFailed(AppError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class Conflict(AppError):
    """A record with the same unique identity already exists."""

    status_code = 409
    code = "conflict"
    message = "A record with that identity already exists."


class InvalidCredentials(AppError):
    """Password login failed.

    Deliberately the same for unknown email, wrong password, and accounts
    without a password, so responses cannot be used to enumerate accounts.
    """

    status_code = 401
    code = "invalid_credentials"
    message = "Invalid email or password."


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class InvalidToken(AppError):
    """Raised by TokenService.verify(). The authentication gate turns it into Unauthenticated."""

    status_code = 401
    code = "invalid_token"
    message = "Token is invalid or expired."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "You do not have permission to perform this action."


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class InternalError(AppError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
