"""Outbound email for OTP delivery: SMTP when configured, log output otherwise."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class OtpMailer(Protocol):
    """Collaborator that delivers a verification code; returns False on failure."""

    def send_otp_email(self, to_email: str, otp: str, username: str) -> bool: ...


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def _otp_bodies(otp: str, username: str, expire_minutes: int) -> tuple[str, str]:
    text_body = (
        f"Hi {username},\n\n"
        f"Your verification code is: {otp}\n\n"
        f"It expires in {expire_minutes} minutes. "
        "If you did not create an account, ignore this email.\n"
    )
    html_body = (
        f"<p>Hi {username},</p>"
        f"<p>Your verification code is: <strong>{otp}</strong></p>"
        f"<p>It expires in {expire_minutes} minutes. "
        "If you did not create an account, ignore this email.</p>"
    )
    return text_body, html_body


class SmtpMailer:
    """Send OTP emails through an SMTP server (STARTTLS or implicit TLS)."""

    subject = "Verify your account"

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        from_email: str | None = None,
        from_name: str = "Storefront",
        timeout: float = 15.0,
        otp_expire_minutes: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or user
        self.from_name = from_name
        self.timeout = timeout
        self.otp_expire_minutes = otp_expire_minutes

    def _open(self, context: ssl.SSLContext) -> smtplib.SMTP:
        if self.use_tls:
            return smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        return smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)

    def _handshake(self, conn: smtplib.SMTP, context: ssl.SSLContext) -> None:
        if self.use_tls:
            conn.starttls(context=context)
        if self.user and self.password:
            conn.login(self.user, self.password)

    def send_otp_email(self, to_email: str, otp: str, username: str) -> bool:
        text_body, html_body = _otp_bodies(otp, username, self.otp_expire_minutes)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = self.subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        try:
            context = ssl.create_default_context()
            # STARTTLS and login run inside the block; the socket closes on any failure.
            with self._open(context) as conn:
                self._handshake(conn, context)
                conn.sendmail(self.from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "OTP email failed",
                extra={"to": redact_email(to_email), "error": type(e).__name__},
            )
            return False
        logger.info("OTP email sent", extra={"to": redact_email(to_email)})
        return True


class LogMailer:
    """Development mailer: writes the code to the log instead of sending it."""

    def send_otp_email(self, to_email: str, otp: str, username: str) -> bool:
        logger.warning(
            "SMTP not configured; OTP for %s (%s) is %s",
            username,
            redact_email(to_email),
            otp,
        )
        return True


def build_mailer(settings: Settings) -> OtpMailer:
    """SmtpMailer when SMTP_HOST is set, LogMailer otherwise (refused in prod)."""
    if settings.SMTP_HOST:
        return SmtpMailer(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=(
                settings.SMTP_PASSWORD.get_secret_value()
                if settings.SMTP_PASSWORD is not None
                else None
            ),
            use_tls=settings.SMTP_USE_TLS,
            from_email=settings.EMAIL_FROM,
            from_name=settings.EMAIL_FROM_NAME,
            timeout=settings.SMTP_TIMEOUT_SEC,
            otp_expire_minutes=settings.OTP_EXPIRE_MINUTES,
        )
    if settings.APP_ENV == "prod":
        raise RuntimeError("SMTP_HOST must be set when APP_ENV=prod")
    return LogMailer()
