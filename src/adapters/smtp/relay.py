"""
SMTP email sender adapter - Implements EmailSender protocol.

Delivers one-time passcodes as HTML mail through an authenticated SMTP
relay (Gmail with an app password by default).
"""

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from src.domain.exceptions import DeliveryError
from src.domain.ports import OtpPurpose

logger = logging.getLogger(__name__)

DELIVERY_FAILED = "Failed to send verification email. Please try again."

_SUBJECTS = {
    OtpPurpose.SIGNUP: "Grade Vision - Verify your email",
    OtpPurpose.FORGOT_PASSWORD: "Grade Vision - Password reset code",
}

_HEADINGS = {
    OtpPurpose.SIGNUP: (
        "Verify Your Email",
        "Use the verification code below to complete your sign-up on Grade Vision.",
    ),
    OtpPurpose.FORGOT_PASSWORD: (
        "Reset Your Password",
        "Use the code below to reset your Grade Vision account password.",
    ),
}

_DIGIT_CELL = (
    '<td style="padding:0 4px;"><div style="width:48px;height:56px;background:#f0f0ff;'
    "border:2px solid #e0e0ef;border-radius:12px;text-align:center;line-height:56px;"
    'font-size:28px;font-weight:700;color:#4f46e5;">{digit}</div></td>'
)


def build_otp_html(code: str, purpose: OtpPurpose, ttl_minutes: int = 5) -> str:
    """Render the HTML body for an OTP message."""
    title, message = _HEADINGS[purpose]
    digits = "".join(_DIGIT_CELL.format(digit=d) for d in code)
    year = datetime.now(timezone.utc).year
    return f"""<!DOCTYPE html>
<html>
<body style="margin:0;padding:0;background:#f4f6f9;font-family:'Segoe UI',Roboto,Helvetica,Arial,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background:#f4f6f9;padding:40px 20px;">
    <tr><td align="center">
      <table width="480" cellpadding="0" cellspacing="0" style="background:#ffffff;border-radius:16px;">
        <tr><td style="background:#4f46e5;padding:32px 40px;text-align:center;">
          <h1 style="margin:0;color:#ffffff;font-size:24px;">Grade Vision</h1>
        </td></tr>
        <tr><td style="padding:40px;">
          <h2 style="margin:0 0 8px;color:#1a1a2e;font-size:22px;">{title}</h2>
          <p style="margin:0 0 32px;color:#6b7280;font-size:15px;">{message}</p>
          <table cellpadding="0" cellspacing="0" align="center"><tr>{digits}</tr></table>
          <p style="margin:32px 0 4px;color:#6b7280;font-size:13px;">
            This code expires in <strong>{ttl_minutes} minutes</strong>.
          </p>
          <p style="margin:0;color:#9ca3af;font-size:13px;">
            If you didn't request this, you can safely ignore this email.
          </p>
        </td></tr>
        <tr><td style="background:#f9fafb;padding:24px 40px;text-align:center;">
          <p style="margin:0;color:#9ca3af;font-size:12px;">&copy; {year} Grade Vision. All rights reserved.</p>
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def build_otp_text(code: str, purpose: OtpPurpose, ttl_minutes: int = 5) -> str:
    title, message = _HEADINGS[purpose]
    return (
        f"{title}\n\n{message}\n\n    {code}\n\n"
        f"This code expires in {ttl_minutes} minutes.\n"
        "If you didn't request this, you can safely ignore this email."
    )


class SmtpEmailSender:
    """
    Implements EmailSender protocol via SMTP with STARTTLS.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_name: str = "Grade Vision",
        ttl_minutes: int = 5,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_name = from_name
        self._ttl_minutes = ttl_minutes
        self._timeout = timeout

    def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> None:
        """
        Send the passcode as a multipart (text + HTML) message.

        Raises:
            DeliveryError: On any SMTP or connection failure. The error
                carries a generic message; the code is never included.
        """
        msg = MIMEMultipart("alternative")
        msg["From"] = f'"{self._from_name}" <{self._username}>'
        msg["To"] = email
        msg["Subject"] = _SUBJECTS[purpose]
        msg.attach(MIMEText(build_otp_text(code, purpose, self._ttl_minutes), "plain"))
        msg.attach(MIMEText(build_otp_html(code, purpose, self._ttl_minutes), "html"))

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.starttls()
                server.login(self._username, self._password)
                server.sendmail(self._username, [email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send OTP email to %s: %s", email, e.__class__.__name__)
            raise DeliveryError(DELIVERY_FAILED) from e

        logger.info("OTP email sent to %s (%s)", email, purpose.value)
