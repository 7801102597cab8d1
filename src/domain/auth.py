"""
Auth domain service - registration, login lockout, and password reset.

Login State Machine (per credential)
====================================

States:
- UNLOCKED: locked_until is None, or in the past
- LOCKED:   locked_until is in the future

Transitions on login(email, password):
    UNLOCKED + password matches            -> UNLOCKED, failed_login_count = 0, session issued
    UNLOCKED + mismatch, count + 1 < max   -> UNLOCKED, failed_login_count += 1        (401)
    UNLOCKED + mismatch, count + 1 >= max  -> LOCKED, locked_until = now + lock window (423)
    LOCKED   + lock still in future        -> LOCKED, password not checked           (423)
    LOCKED   + lock in the past            -> counters cleared, then evaluated as UNLOCKED

Each login runs its read-modify-write under the repository's per-email lock,
so concurrent attempts against one account cannot lose counter updates.
Lock expiry is evaluated lazily on the next attempt.

Demo accounts bypass every flow above and are resolved once per call via
AccountDirectory.

OTP-gated flows: register() and reset_password() do not re-check that a
verify_otp() call succeeded beforehand. The two requests are uncorrelated.
"""

import functools
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

import bcrypt

from .accounts import AccountDirectory
from .exceptions import (
    AuthenticationError,
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
    Clock,
    Credential,
    CredentialRepository,
    EmailSender,
    Identity,
    OtpFailure,
    OtpPurpose,
    Role,
    utc_now,
)
from .session import SessionIssuer

logger = logging.getLogger(__name__)

_DUMMY_PASSWORD = b"dummy_password_for_timing_safety"

# bcrypt only considers the first 72 bytes
_BCRYPT_MAX_BYTES = 72

INVALID_CREDENTIALS = "Invalid email or password"


@functools.lru_cache
def _dummy_hash(cost: int) -> str:
    """
    Bcrypt hash for timing oracle prevention, computed once per cost factor.

    Unknown emails are still checked against this so login time does not
    reveal whether an email is registered. It must share the cost of real
    hashes, or the two paths run at different speeds.
    """
    return bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=cost)).decode()


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


@dataclass
class AuthService:
    """
    Domain service orchestrating account security flows.

    The only consumer of the credential and OTP stores.
    """

    credentials: CredentialRepository
    otp: OtpService
    email_sender: EmailSender
    sessions: SessionIssuer
    accounts: AccountDirectory
    max_login_attempts: int = 5
    lock_duration: timedelta = timedelta(minutes=15)
    bcrypt_cost: int = 10
    clock: Clock = field(default=utc_now)

    def __post_init__(self) -> None:
        # Warm the cache so the first unknown-email login is not the slow one
        _dummy_hash(self.bcrypt_cost)

    # ------------------------------------------------------------------
    # One-time passcodes
    # ------------------------------------------------------------------

    def send_otp(self, email: str, purpose: OtpPurpose) -> None:
        """
        Check per-purpose preconditions, issue a code and deliver it.

        Raises:
            ConflictError: signup for an email that is already registered
            ValidationError: password reset requested for a demo account
            NotFoundError: password reset requested for an unknown email
            DeliveryError: the email sender failed
        """
        kind = self.accounts.kind_of(email)

        if purpose is OtpPurpose.SIGNUP:
            if kind is AccountKind.DEMO or self.credentials.find_by_email(email) is not None:
                raise ConflictError("An account with this email already exists")
        else:
            if kind is AccountKind.DEMO:
                raise ValidationError("Password reset is not available for demo accounts")
            if self.credentials.find_by_email(email) is None:
                raise NotFoundError("No account found with this email")

        code = self.otp.generate(email, purpose)
        try:
            self.email_sender.send_otp(email, code, purpose)
        except DeliveryError:
            logger.error("OTP delivery failed for %s (%s)", email, purpose.value)
            raise

    def verify_otp(self, email: str, code: str, purpose: OtpPurpose) -> None:
        """
        Verify a submitted code; consumes it on success.

        Raises:
            ExpiredError: the code expired
            RateLimitedError: the attempt budget was exhausted
            ValidationError: no code on file, or the code did not match
        """
        result = self.otp.verify(email, code, purpose)
        if result.valid:
            return

        reason = result.reason or "Invalid OTP"
        if result.failure is OtpFailure.EXPIRED:
            raise ExpiredError(reason)
        if result.failure is OtpFailure.TOO_MANY_ATTEMPTS:
            raise RateLimitedError(reason)
        raise ValidationError(reason)

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: Role | None = None,
    ) -> tuple[Identity, str]:
        """
        Create a credential and mint a session for it.

        Raises:
            ConflictError: If the email is already registered
        """
        if self.accounts.kind_of(email) is AccountKind.DEMO:
            raise ConflictError("User already exists with this email")

        now = self.clock()
        credential = Credential(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=self._hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role or Role.STUDENT,
            created_at=now,
            updated_at=now,
        )
        if not self.credentials.add(credential):
            raise ConflictError("User already exists with this email")

        logger.info("Registered new account %s", email)
        identity = Identity.from_credential(credential)
        return identity, self.sessions.issue(identity)

    def login(self, email: str, password: str) -> tuple[Identity, str]:
        """
        Authenticate with email and password, applying the lockout policy.

        Raises:
            AuthenticationError: Unknown email or wrong password (401)
            LockedError: Account locked, either already or by this attempt (423)
        """
        if self.accounts.kind_of(email) is AccountKind.DEMO:
            identity = self.accounts.demo_identity(email)
            return identity, self.sessions.issue(identity)

        now = self.clock()

        def attempt(
            credential: Credential | None,
        ) -> tuple[Credential | None, Identity | Exception]:
            if credential is None:
                self._check_password(password, _dummy_hash(self.bcrypt_cost))
                return None, AuthenticationError(INVALID_CREDENTIALS)

            if credential.locked_until is not None:
                if credential.locked_until > now:
                    minutes = math.ceil((credential.locked_until - now).total_seconds() / 60)
                    return None, LockedError(
                        f"Account is locked. Please try again in {_plural(minutes, 'minute')}.",
                        minutes,
                    )
                # Lock has lapsed: clear it and evaluate this attempt normally
                credential.failed_login_count = 0
                credential.locked_until = None

            if self._check_password(password, credential.password_hash):
                credential.failed_login_count = 0
                return credential, Identity.from_credential(credential)

            credential.failed_login_count += 1
            if credential.failed_login_count >= self.max_login_attempts:
                credential.failed_login_count = self.max_login_attempts
                credential.locked_until = now + self.lock_duration
                minutes = math.ceil(self.lock_duration.total_seconds() / 60)
                return credential, LockedError(
                    "Account locked due to too many failed login attempts. "
                    f"Please try again in {_plural(minutes, 'minute')}.",
                    minutes,
                )

            remaining = self.max_login_attempts - credential.failed_login_count
            return credential, AuthenticationError(
                f"Invalid password. {_plural(remaining, 'attempt')} remaining."
            )

        outcome = self.credentials.modify(email, attempt)
        if isinstance(outcome, LockedError):
            logger.warning("Login refused for locked account %s", email)
            raise outcome
        if isinstance(outcome, Exception):
            logger.warning("Failed login for %s", email)
            raise outcome

        return outcome, self.sessions.issue(outcome)

    # ------------------------------------------------------------------
    # Password management
    # ------------------------------------------------------------------

    def reset_password(self, email: str, new_password: str) -> None:
        """
        Replace the password of an existing account and clear its lockout.

        Raises:
            ValidationError: demo account
            NotFoundError: unknown email
        """
        if self.accounts.kind_of(email) is AccountKind.DEMO:
            raise ValidationError("Password reset is not available for demo accounts")

        # Hash before taking the per-email lock
        password_hash = self._hash_password(new_password)
        now = self.clock()

        def apply(credential: Credential | None) -> tuple[Credential | None, bool]:
            if credential is None:
                return None, False
            credential.password_hash = password_hash
            credential.failed_login_count = 0
            credential.locked_until = None
            credential.updated_at = now
            return credential, True

        if not self.credentials.modify(email, apply):
            raise NotFoundError("No account found with this email")
        logger.info("Password reset completed for %s", email)

    def change_password(
        self, identity: Identity, current_password: str, new_password: str
    ) -> None:
        """
        Change the password of a signed-in identity.

        Raises:
            ValidationError: demo identity
            NotFoundError: identity no longer exists
            AuthenticationError: current password is wrong
        """
        if self.accounts.kind_of(identity.email) is AccountKind.DEMO:
            raise ValidationError("Password change is not available for demo accounts")

        credential = self.credentials.find_by_id(identity.id)
        if credential is None:
            raise NotFoundError("User not found")
        if not self._check_password(current_password, credential.password_hash):
            raise AuthenticationError("Current password is incorrect")

        password_hash = self._hash_password(new_password)
        now = self.clock()

        def apply(current: Credential | None) -> tuple[Credential | None, bool]:
            if current is None:
                return None, False
            current.password_hash = password_hash
            current.updated_at = now
            return current, True

        if not self.credentials.modify(credential.email, apply):
            raise NotFoundError("User not found")

    # ------------------------------------------------------------------
    # Identity and profile
    # ------------------------------------------------------------------

    def identity_from_token(self, token: str) -> Identity:
        """
        Resolve the identity behind a session token.

        Raises:
            AuthenticationError: invalid token, or its identity no longer exists
        """
        claims = self.sessions.decode(token)
        return self.get_identity(str(claims["id"]), str(claims.get("email", "")))

    def get_identity(self, identity_id: str, email: str = "") -> Identity:
        demo = self.accounts.demo_identity_for(identity_id, email)
        if demo is not None:
            return demo

        credential = self.credentials.find_by_id(identity_id)
        if credential is None:
            raise AuthenticationError("The user belonging to this token no longer exists")
        return Identity.from_credential(credential)

    def update_profile(
        self,
        identity: Identity,
        first_name: str | None = None,
        last_name: str | None = None,
        avatar: str | None = None,
    ) -> Identity:
        """
        Update display fields of a signed-in identity.

        Raises:
            ValidationError: demo identity
            NotFoundError: identity no longer exists
        """
        if self.accounts.kind_of(identity.email) is AccountKind.DEMO:
            raise ValidationError("Profile updates are not available for demo accounts")

        now = self.clock()

        def apply(credential: Credential | None) -> tuple[Credential | None, Identity | None]:
            if credential is None or credential.id != identity.id:
                return None, None
            if first_name is not None:
                credential.first_name = first_name
            if last_name is not None:
                credential.last_name = last_name
            if avatar is not None:
                credential.avatar = avatar
            credential.updated_at = now
            return credential, Identity.from_credential(credential)

        updated = self.credentials.modify(identity.email, apply)
        if updated is None:
            raise NotFoundError("User not found")
        return updated

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with the configured cost factor."""
        password_bytes = password.encode()[:_BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()

    def _check_password(self, password: str, password_hash: str) -> bool:
        """Constant-time bcrypt comparison."""
        password_bytes = password.encode()[:_BCRYPT_MAX_BYTES]
        return bcrypt.checkpw(password_bytes, password_hash.encode())
