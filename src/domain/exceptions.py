"""
Domain exceptions - Semantic error types for authentication.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
The API layer maps each class to an HTTP status code.
"""


class AuthError(Exception):
    """Base class for authentication domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Malformed input or an operation not allowed for this account."""

    pass


class NotFoundError(AuthError):
    """Unknown email or identity."""

    pass


class ConflictError(AuthError):
    """Email is already registered."""

    pass


class AuthenticationError(AuthError):
    """Bad credentials or an unusable session token."""

    pass


class LockedError(AuthError):
    """Login refused while the account lock is active."""

    def __init__(self, message: str, minutes_remaining: int) -> None:
        super().__init__(message)
        self.minutes_remaining = minutes_remaining


class RateLimitedError(AuthError):
    """OTP attempt budget exhausted."""

    pass


class ExpiredError(AuthError):
    """OTP past its expiry."""

    pass


class DeliveryError(AuthError):
    """The notification sender could not deliver a code."""

    pass
