from tablebook.schemas.account import (
    AccountCreate, AccountLogin, AccountResponse, RegistrationResponse, Token, MessageResponse,
)
from tablebook.schemas.reservation import (
    ReservationCreate, ReservationCancel, ReservationResponse, ReservationCancelResponse, AvailabilityResponse,
)

__all__ = [
    "AccountCreate", "AccountLogin", "AccountResponse", "RegistrationResponse", "Token", "MessageResponse",
    "ReservationCreate", "ReservationCancel", "ReservationResponse", "ReservationCancelResponse",
    "AvailabilityResponse",
]
