"""
SMTP mail delivery and the verification email.

smtplib is blocking, so each send runs in a worker thread and the event
loop keeps serving other requests while the relay answers.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from tablebook.core.config import Settings
from tablebook.core.exceptions import MailError
from tablebook.core.logging import get_logger
from tablebook.services.interfaces.mailer import Mailer

logger = get_logger(__name__)


class SmtpMailer(Mailer):
    """
    Delivers through an SMTP relay, with STARTTLS and login when configured.
    """

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME
        self.password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.timeout = settings.SMTP_TIMEOUT
        self.sender = settings.MAIL_FROM

    async def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("smtp_send_failed", to=to, host=self.host, error=str(e))
            raise MailError(detail=str(e)) from e

        logger.info("mail_sent", to=to, subject=subject)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)


def build_verification_link(base_url: str, email: str, token: str) -> str:
    query = urlencode({"email": email, "token": token})
    return f"{base_url.rstrip('/')}/api/v1/auth/verify?{query}"


def render_verification_email(username: str, link: str, ttl_minutes: int) -> tuple[str, str]:
    subject = "Confirm your email"
    body = (
        f"Hello, {username}!\n\n"
        f"Confirm your email to finish registration:\n{link}\n\n"
        f"The link is valid for {ttl_minutes} minutes.\n"
    )
    return subject, body
