from tablebook.models.account import Account
from tablebook.models.reservation import Reservation

__all__ = ["Account", "Reservation"]
