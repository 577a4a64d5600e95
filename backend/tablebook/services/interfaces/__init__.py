"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .mailer import Mailer
from .console_mailer import ConsoleMailer

__all__ = ['Mailer', 'ConsoleMailer']
