"""
Console mail backend - nothing leaves the process.
"""

from tablebook.core.logging import get_logger
from tablebook.services.interfaces.mailer import Mailer

logger = get_logger(__name__)


class ConsoleMailer(Mailer):
    """
    Logs every message instead of sending it.

    Use when:
    - Running locally without an SMTP relay
    - The verification link should be copied from the log
    """

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("mail_logged", to=to, subject=subject, body=body)
