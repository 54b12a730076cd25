"""Typed service errors for the identity and session core.

Each error carries a stable ``message`` that is safe to show to clients, an
HTTP ``status_code`` and a machine-readable ``error_code``. The API layer maps
them to responses in ``app.api.errors``; nothing else in the error (library
exceptions, token failure reasons) is sent over the wire.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "bad_request"
    default_message: str = "Bad request"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed input that passed schema validation but not business rules."""

    status_code = 422
    error_code = "validation_error"
    default_message = "Validation error"


class DuplicateError(ServiceError):
    """Username or email already taken."""

    status_code = 400
    error_code = "duplicate"
    default_message = "User with this username or email already exists"


class InvalidCredentialsError(ServiceError):
    """Unknown email or wrong password; the two are deliberately indistinguishable."""

    status_code = 400
    error_code = "invalid_credentials"
    default_message = "Invalid email or password"


class InvalidOTPError(ServiceError):
    status_code = 400
    error_code = "invalid_otp"
    default_message = "Invalid OTP or OTP expired"


class InvalidTokenError(ServiceError):
    """
    Token could not be verified.

    ``reason`` records why (expired, invalid, revoked, wrong_type) for logs and
    diagnostics only; clients always see the same message.
    """

    status_code = 401
    error_code = "invalid_token"
    default_message = "Invalid or expired token"

    EXPIRED = "expired"
    INVALID = "invalid"
    REVOKED = "revoked"
    WRONG_TYPE = "wrong_type"

    def __init__(self, message: str | None = None, reason: str = INVALID) -> None:
        self.reason = reason
        super().__init__(message)

    @property
    def is_expired(self) -> bool:
        return self.reason == self.EXPIRED


class AccountNotActivatedError(ServiceError):
    status_code = 403
    error_code = "account_not_activated"
    default_message = "Account is not activated. Please verify your email."


class AccountDeactivatedError(ServiceError):
    status_code = 403
    error_code = "account_deactivated"
    default_message = "Account is deactivated"


class NotFoundError(ServiceError):
    status_code = 404
    error_code = "not_found"
    default_message = "User not found"


class ForbiddenError(ServiceError):
    status_code = 403
    error_code = "forbidden"
    default_message = "Insufficient permissions"


class UnauthenticatedError(ServiceError):
    status_code = 401
    error_code = "unauthorized"
    default_message = "Authentication required"


class NotificationError(ServiceError):
    """Outbound email could not be delivered."""

    status_code = 502
    error_code = "notification_failed"
    default_message = "Failed to send verification email. Please try again."


class InternalError(ServiceError):
    status_code = 500
    error_code = "server_error"
    default_message = "Internal server error"


class HashingError(InternalError):
    """The password hashing primitive failed or was given a malformed hash."""
