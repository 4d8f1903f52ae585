"""
app.utils.email_sender - password reset mail for QuizArena

- If SMTP is not fully configured (SMTP_USER/SMTP_PASS missing), the OTP is
  logged instead of mailed, so local development works without a mail server.
- Uses smtplib with STARTTLS (or SMTPS when MAIL_SSL_TLS is set).
- SMTP failures are logged and re-raised so background tasks surface them.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from app.core.config import settings

logger = logging.getLogger("quizarena.email")


def build_reset_message(email: str, otp: str, subject: Optional[str] = None) -> EmailMessage:
    minutes = max(1, settings.OTP_TTL_SECONDS // 60)
    msg = EmailMessage()
    msg["Subject"] = subject or "Your QuizArena password reset code"
    msg["From"] = settings.MAIL_FROM or settings.SMTP_USER or "no-reply@quizarena.local"
    msg["To"] = email
    msg.set_content(
        f"Your QuizArena password reset code is: {otp}\n"
        f"This code expires in {minutes} minutes. If you did not ask for it, ignore this email."
    )
    return msg


def send_password_reset_otp(email: str, otp: str, subject: Optional[str] = None) -> None:
    """Send a password reset OTP to ``email``."""
    if not settings.SMTP_USER or not settings.SMTP_PASS:
        logger.warning("No SMTP credentials configured; password reset OTP for %s: %s", email, otp)
        return

    msg = build_reset_message(email, otp, subject)

    try:
        if settings.MAIL_SSL_TLS:
            with smtplib.SMTP_SSL(settings.MAIL_SERVER, settings.MAIL_PORT, timeout=20) as server:
                server.login(settings.SMTP_USER, settings.SMTP_PASS)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT, timeout=20) as server:
                server.ehlo()
                if settings.MAIL_STARTTLS:
                    server.starttls()
                    server.ehlo()
                server.login(settings.SMTP_USER, settings.SMTP_PASS)
                server.send_message(msg)
        logger.info("password reset email sent to %s", email)
    except smtplib.SMTPAuthenticationError:
        logger.error("SMTP authentication failed for %s", settings.SMTP_USER)
        raise
    except smtplib.SMTPException:
        logger.exception("SMTP error while sending password reset email to %s", email)
        raise
