"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the records the domain works on and the interfaces
(ports) that the domain requires from infrastructure. Adapters implement
these protocols.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, TypeVar

T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock - timezone-aware UTC now."""
    return datetime.now(timezone.utc)


class OtpPurpose(str, Enum):
    """Intent a one-time passcode was issued for. Codes never cross purposes."""

    SIGNUP = "signup"
    FORGOT_PASSWORD = "forgot-password"


class AccountKind(Enum):
    """
    How an email is treated by the auth flows.

    Resolved once per request by AccountDirectory so that the demo bypass
    is a single branch in each flow.
    """

    NORMAL = "normal"
    DEMO = "demo"


class Role(str, Enum):
    """Dashboard role attached to an identity."""

    STUDENT = "student"
    ADMIN = "admin"


class OtpFailure(Enum):
    """Reason category for a failed OTP verification."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    INVALID_CODE = "invalid_code"


@dataclass
class Credential:
    """
    Stored identity with its password hash and lockout counters.

    Lifecycle: created by registration, mutated by login attempts and by
    password reset/change, never deleted.
    """

    id: str
    email: str
    password_hash: str
    first_name: str
    last_name: str
    role: Role = Role.STUDENT
    avatar: str | None = None
    failed_login_count: int = 0
    locked_until: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class OneTimeCode:
    """Pending one-time passcode, at most one live per (email, purpose)."""

    email: str
    purpose: OtpPurpose
    code: str
    issued_at: datetime
    expires_at: datetime
    attempt_count: int = 0


@dataclass(frozen=True)
class Identity:
    """
    Public view of an identity.

    Never carries the password hash or lockout counters, so it is safe to
    hand to the API layer.
    """

    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    avatar: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_credential(cls, credential: Credential) -> "Identity":
        return cls(
            id=credential.id,
            email=credential.email,
            first_name=credential.first_name,
            last_name=credential.last_name,
            role=credential.role,
            avatar=credential.avatar,
            created_at=credential.created_at,
            updated_at=credential.updated_at,
        )


@dataclass(frozen=True)
class OtpVerification:
    """Result of OtpService.verify()."""

    valid: bool
    reason: str | None = None
    failure: OtpFailure | None = None


class CredentialRepository(Protocol):
    """Port interface for credential persistence."""

    def find_by_email(self, email: str) -> Credential | None:
        """Return the credential for an email, or None."""
        ...

    def find_by_id(self, credential_id: str) -> Credential | None:
        """Return the credential with this id, or None."""
        ...

    def add(self, credential: Credential) -> bool:
        """
        Atomically insert a new credential.

        Returns:
            True if inserted, False if the email is already registered
        """
        ...

    def modify(
        self,
        email: str,
        mutator: Callable[[Credential | None], tuple[Credential | None, T]],
    ) -> T:
        """
        Read-modify-write a single credential under an exclusive per-email lock.

        The mutator receives the current record (or None) and returns
        (record_to_persist, result). A non-None record is written back before
        the lock is released; None leaves the store untouched. Returns the
        mutator's result.
        """
        ...


class OtpRepository(Protocol):
    """Port interface for one-time passcode persistence."""

    def replace(self, code: OneTimeCode) -> None:
        """Delete any code for (email, purpose) and store this one, atomically."""
        ...

    def modify(
        self,
        email: str,
        purpose: OtpPurpose,
        mutator: Callable[[OneTimeCode | None], tuple[OneTimeCode | None, T]],
    ) -> T:
        """
        Read-modify-write a single code under an exclusive per-key lock.

        The mutator receives the current record (or None) and returns
        (record_to_persist, result). A non-None record is written back;
        None deletes the record if one exists.
        """
        ...

    def purge_expired(self, now: datetime) -> int:
        """Delete all codes with expires_at < now. Returns number deleted."""
        ...


class EmailSender(Protocol):
    """Port interface for OTP delivery."""

    def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> None:
        """
        Deliver a one-time passcode to the recipient.

        Raises:
            DeliveryError: If the message could not be sent. The error
                message must not contain the code.
        """
        ...
