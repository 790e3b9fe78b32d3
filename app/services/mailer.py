from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from html import escape
from typing import Optional, Protocol

from app.core.config import Settings
from app.core.email_address import mask_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    reason: Optional[str] = None
    message_id: Optional[str] = None

    @classmethod
    def success(cls, message_id: Optional[str] = None) -> "DeliveryResult":
        return cls(ok=True, message_id=message_id)

    @classmethod
    def failure(cls, reason: str) -> "DeliveryResult":
        return cls(ok=False, reason=reason)


class EmailDispatcher(Protocol):
    def send(self, identity: str, code: str, display_name: Optional[str] = None) -> DeliveryResult:
        ...


@dataclass(frozen=True)
class VerificationEmail:
    subject: str
    text: str
    html: str


def render_verification_email(
    code: str,
    display_name: Optional[str],
    brand: str,
    ttl_minutes: int,
) -> VerificationEmail:
    """Собирает тему, текстовую и HTML-версию письма с кодом."""
    name = (display_name or "").strip() or "there"
    year = datetime.utcnow().year
    text = (
        f"Hi {name},\n\n"
        f"Thank you for signing up for {brand}!\n\n"
        f"Your verification code is: {code}\n\n"
        f"This code will expire in {ttl_minutes} minutes.\n\n"
        "If you didn't request this verification code, please ignore this email.\n\n"
        "---\n"
        "This is an automated email, please do not reply.\n"
        f"© {year} {brand}. All rights reserved.\n"
    )
    html = f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #f9f9f9; border-radius: 10px; padding: 30px; border: 1px solid #e0e0e0;">
      <div style="text-align: center; margin-bottom: 30px;">
        <h1 style="color: #007bff; margin: 0;">{escape(brand)}</h1>
        <p>Email Verification</p>
      </div>
      <p>Hi {escape(name)},</p>
      <p>Thank you for signing up for {escape(brand)}! To complete your registration, please verify your email address using the code below:</p>
      <div style="background-color: white; border: 2px dashed #007bff; border-radius: 8px; padding: 20px; text-align: center; margin: 30px 0;">
        <div style="font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #007bff; font-family: 'Courier New', monospace;">{code}</div>
      </div>
      <div style="background-color: #fff3cd; border-left: 4px solid #ffc107; padding: 15px; margin: 20px 0; border-radius: 4px;">
        <strong>This code will expire in {ttl_minutes} minutes.</strong>
      </div>
      <p>If you didn't request this verification code, please ignore this email.</p>
      <div style="text-align: center; margin-top: 30px; color: #666; font-size: 14px;">
        <p>This is an automated email, please do not reply.</p>
        <p>&copy; {year} {escape(brand)}. All rights reserved.</p>
      </div>
    </div>
  </body>
</html>
"""
    return VerificationEmail(
        subject=f"Verify Your Email - {brand}",
        text=text,
        html=html,
    )


class SmtpEmailDispatcher:
    """Отправка писем через SMTP (STARTTLS или SSL)."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: Optional[str] = None,
        use_ssl: bool = False,
        timeout: float = 10.0,
        brand: str = "SnapSyllabus",
        ttl_minutes: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.brand = brand
        self.ttl_minutes = ttl_minutes

    def build_message(self, identity: str, code: str, display_name: Optional[str] = None) -> EmailMessage:
        rendered = render_verification_email(code, display_name, self.brand, self.ttl_minutes)
        msg = EmailMessage()
        msg["From"] = formataddr((self.brand, self.sender))
        msg["To"] = identity
        msg["Subject"] = rendered.subject
        msg["Message-ID"] = make_msgid()
        msg.set_content(rendered.text)
        msg.add_alternative(rendered.html, subtype="html")
        return msg

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        server.starttls(context=context)
        return server

    def send(self, identity: str, code: str, display_name: Optional[str] = None) -> DeliveryResult:
        msg = self.build_message(identity, code, display_name)
        try:
            with self._connect() as server:
                server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error sending verification email to %s: %s", mask_email(identity), exc)
            return DeliveryResult.failure(str(exc) or exc.__class__.__name__)
        logger.info("Verification email sent to %s", mask_email(identity))
        return DeliveryResult.success(msg.get("Message-ID"))


class ConsoleEmailDispatcher:
    """Режим разработки без SMTP: код просто пишется в лог."""

    def send(self, identity: str, code: str, display_name: Optional[str] = None) -> DeliveryResult:
        logger.info("VERIFICATION CODE for %s: %s", identity, code)
        return DeliveryResult.success()


def build_dispatcher(settings: Settings) -> EmailDispatcher:
    ttl_minutes = max(1, settings.VERIFICATION_CODE_TTL_SECONDS // 60)
    if settings.smtp_configured:
        return SmtpEmailDispatcher(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender=settings.SMTP_FROM,
            use_ssl=settings.SMTP_SECURE,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
            brand=settings.MAIL_BRAND_NAME,
            ttl_minutes=ttl_minutes,
        )
    logger.warning(
        "No SMTP configuration found, verification codes will be written to the log. "
        "Set SMTP_HOST, SMTP_USER and SMTP_PASSWORD in .env to send real emails."
    )
    return ConsoleEmailDispatcher()
