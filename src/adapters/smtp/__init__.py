"""Email sender adapters - Console and SMTP implementations."""

from .console import ConsoleEmailSender
from .relay import SmtpEmailSender

__all__ = ["ConsoleEmailSender", "SmtpEmailSender"]
