"""
Mail backend factory.
Configures which Mailer implementation the application uses.
"""

from fastapi import Request

from tablebook.core.config import Settings
from tablebook.services.interfaces.mailer import Mailer
from tablebook.services.interfaces.console_mailer import ConsoleMailer
from tablebook.services.mail_service import SmtpMailer


def build_mailer(settings: Settings) -> Mailer:
    """
    Build the configured mailer.

    Selected by MAIL_BACKEND:
    - console: ConsoleMailer (default, development)
    - smtp: SmtpMailer
    """
    if settings.MAIL_BACKEND == "smtp":
        return SmtpMailer(settings)
    return ConsoleMailer()


def get_mailer(request: Request) -> Mailer:
    """Mailer built at startup and kept on app.state."""
    return request.app.state.mailer
