"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging one-time passcodes for development use.
"""

import logging

from src.domain.ports import OtpPurpose

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints codes to the application log.
    """

    def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> None:
        """
        Log the passcode (simulates email delivery).

        The code is logged at INFO level to be visible in the server log.

        Args:
            email: Recipient email address
            code: 6-digit one-time passcode
            purpose: What the code was issued for
        """
        logger.info("[OTP] Email: %s Purpose: %s Code: %s", email, purpose.value, code)
