"""
OTP domain service - issuance and verification of one-time passcodes.

Lifecycle of a code
===================

    generate()  -> LIVE (attempt_count = 0, expires_at = issued_at + TTL)
    verify()    -> consumed on success            (record deleted)
                -> consumed on expiry detection   (record deleted)
                -> consumed on exhausted budget   (record deleted)
                -> LIVE with attempt_count + 1    (wrong code)

Checks in verify() run in a fixed order: presence, expiry, attempt budget,
code equality. An expired code therefore reports "expired" even when its
attempt budget is also spent.

Expiry is evaluated lazily on access; cleanup() is housekeeping only.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import timedelta

from .ports import (
    Clock,
    OneTimeCode,
    OtpFailure,
    OtpPurpose,
    OtpRepository,
    OtpVerification,
    utc_now,
)

logger = logging.getLogger(__name__)

NOT_FOUND_REASON = "No OTP found. Please request a new one."
EXPIRED_REASON = "OTP has expired. Please request a new one."
TOO_MANY_ATTEMPTS_REASON = "Too many incorrect attempts. Please request a new OTP."


def _invalid_reason(remaining: int) -> str:
    plural = "" if remaining == 1 else "s"
    return f"Invalid OTP. {remaining} attempt{plural} remaining."


@dataclass
class OtpService:
    """
    Domain service for one-time passcodes keyed by (email, purpose).

    The repository serializes read-modify-write per key, so two concurrent
    verifications of the same code cannot both succeed.
    """

    repository: OtpRepository
    ttl: timedelta = timedelta(minutes=5)
    max_attempts: int = 5
    clock: Clock = field(default=utc_now)

    def generate(self, email: str, purpose: OtpPurpose) -> str:
        """
        Issue a fresh 6-digit code, invalidating any previous one for the key.

        Returns:
            The plaintext code; the caller is responsible for delivery
        """
        code = self._generate_code()
        now = self.clock()
        self.repository.replace(
            OneTimeCode(
                email=email,
                purpose=purpose,
                code=code,
                issued_at=now,
                expires_at=now + self.ttl,
                attempt_count=0,
            )
        )
        logger.info("Issued %s OTP for %s", purpose.value, email)
        return code

    def verify(self, email: str, code: str, purpose: OtpPurpose) -> OtpVerification:
        """
        Verify a submitted code.

        Returns:
            OtpVerification with valid=True on success (code consumed), or
            valid=False with a user-facing reason and failure category
        """
        now = self.clock()

        def check(record: OneTimeCode | None) -> tuple[OneTimeCode | None, OtpVerification]:
            if record is None:
                return None, OtpVerification(False, NOT_FOUND_REASON, OtpFailure.NOT_FOUND)

            if now > record.expires_at:
                return None, OtpVerification(False, EXPIRED_REASON, OtpFailure.EXPIRED)

            if record.attempt_count >= self.max_attempts:
                return None, OtpVerification(
                    False, TOO_MANY_ATTEMPTS_REASON, OtpFailure.TOO_MANY_ATTEMPTS
                )

            if not secrets.compare_digest(record.code.encode(), code.encode()):
                record.attempt_count += 1
                remaining = self.max_attempts - record.attempt_count
                return record, OtpVerification(
                    False, _invalid_reason(remaining), OtpFailure.INVALID_CODE
                )

            # Single-use: drop the record on success
            return None, OtpVerification(True)

        result = self.repository.modify(email, purpose, check)
        if not result.valid:
            logger.info(
                "OTP verification failed for %s (%s): %s",
                email,
                purpose.value,
                result.failure.value if result.failure else "unknown",
            )
        return result

    def cleanup(self) -> int:
        """Delete all expired codes. Returns the number removed."""
        removed = self.repository.purge_expired(self.clock())
        if removed:
            logger.info("Purged %d expired OTP(s)", removed)
        return removed

    def _generate_code(self) -> str:
        """
        Generate a cryptographically secure 6-digit code.

        Drawn uniformly from 100000-999999, so it is always exactly six
        digits with no leading zero.
        """
        return str(100000 + secrets.randbelow(900000))
