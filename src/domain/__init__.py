"""
Domain layer - Pure business logic with zero framework imports.

This package contains the core account-security logic: one-time passcodes,
registration, login lockout, password reset and session tokens. It defines
its own port interfaces for infrastructure abstraction.
"""

from .accounts import AccountDirectory
from .auth import AuthService
from .exceptions import (
    AuthenticationError,
    AuthError,
    ConflictError,
    DeliveryError,
    ExpiredError,
    LockedError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from .otp import OtpService
from .ports import (
    AccountKind,
    Credential,
    CredentialRepository,
    EmailSender,
    Identity,
    OneTimeCode,
    OtpFailure,
    OtpPurpose,
    OtpRepository,
    OtpVerification,
    Role,
)
from .session import SessionIssuer

__all__ = [
    "AccountDirectory",
    "AccountKind",
    "AuthError",
    "AuthService",
    "AuthenticationError",
    "ConflictError",
    "Credential",
    "CredentialRepository",
    "DeliveryError",
    "EmailSender",
    "ExpiredError",
    "Identity",
    "LockedError",
    "NotFoundError",
    "OneTimeCode",
    "OtpFailure",
    "OtpPurpose",
    "OtpRepository",
    "OtpService",
    "OtpVerification",
    "RateLimitedError",
    "Role",
    "SessionIssuer",
    "ValidationError",
]
