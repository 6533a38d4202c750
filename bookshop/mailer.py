"""
OTP e-mail delivery over SMTP.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

from loguru import logger

from bookshop.errors import EmailDeliveryError

OTP_SUBJECT = "Password Reset OTP - Book Shop"

OTP_TEXT = (
    "Your OTP for password reset is: {otp}\n\n"
    "This OTP will expire in {minutes} minutes.\n\n"
    "If you did not request a password reset, please ignore this email."
)

OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>Password Reset Request</h2>
  <p>Your OTP for password reset is:</p>
  <div style="background-color: #f4f4f4; padding: 15px; text-align: center; font-size: 24px; font-weight: bold; letter-spacing: 5px;">
    {otp}
  </div>
  <p style="margin-top: 20px;">This OTP will expire in {minutes} minutes.</p>
  <p style="color: #666;">If you did not request a password reset, please ignore this email.</p>
</div>
"""


def build_otp_message(sender: str, recipient: str, otp: str, minutes: int = 10) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = OTP_SUBJECT
    message["From"] = sender
    message["To"] = recipient
    message.set_content(OTP_TEXT.format(otp=otp, minutes=minutes))
    message.add_alternative(OTP_HTML.format(otp=otp, minutes=minutes), subtype="html")
    return message


class SmtpMailer:
    """Sends reset codes through an SMTP relay."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        use_tls: bool = True,
        otp_ttl_minutes: int = 10,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.otp_ttl_minutes = otp_ttl_minutes
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send_otp(self, email: str, otp: str) -> None:
        """
        Deliver a reset code.

        Raises:
            EmailDeliveryError: SMTP not configured or the relay refused
        """
        if not self.configured:
            raise EmailDeliveryError("SMTP is not configured")

        message = build_otp_message(self.sender, email, otp, self.otp_ttl_minutes)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"SMTP delivery failed: {e}") from e

        logger.info(f"Sent password reset code to {email}")
