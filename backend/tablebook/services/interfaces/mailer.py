"""
Outgoing mail interface.
Lets registration send verification links without knowing how mail leaves the process.
"""

from abc import ABC, abstractmethod


class Mailer(ABC):
    """
    Interface for mail delivery backends.

    Implementations:
    - ConsoleMailer: writes the message to the log (development)
    - SmtpMailer: delivers through an SMTP relay
    """

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        """
        Deliver one plain-text message.

        Args:
            to: Recipient address
            subject: Subject line
            body: Plain-text body

        Raises:
            MailError: if the backend could not accept the message
        """
        pass
