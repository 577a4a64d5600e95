"""
Domain error taxonomy.

Every error the core can report derives from TableBookingError and carries
the machine-readable code and HTTP status used by the API error handlers.
The admission and validation services return these as values inside their
outcome objects; route handlers raise them.
"""

from enum import Enum
from typing import Optional


class TableBookingError(Exception):
    """Base exception for table booking errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ValidationRule(str, Enum):
    """Closed set of reservation request rules, in evaluation order."""

    PARTY_SIZE_NOT_INTEGER = "party_size_not_integer"
    PARTY_SIZE_OUT_OF_RANGE = "party_size_out_of_range"
    TABLE_ID_NOT_INTEGER = "table_id_not_integer"
    TABLE_ID_OUT_OF_RANGE = "table_id_out_of_range"
    INVALID_DATE = "invalid_date"
    INVALID_TIME = "invalid_time"
    NOT_IN_FUTURE = "not_in_future"
    OUTSIDE_OPENING_HOURS = "outside_opening_hours"


class ReservationValidationError(TableBookingError):
    """A reservation request broke one business rule."""

    def __init__(self, field: str, rule: ValidationRule, message: str):
        self.field = field
        self.rule = rule
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=422,
        )


class SlotConflictError(TableBookingError):
    """The (table, date, time) slot already holds an active reservation."""

    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="This table is already booked for the selected date and time",
            code="SLOT_ALREADY_BOOKED",
            status_code=409,
            detail=detail,
        )


class NotFoundOrForbiddenError(TableBookingError):
    """
    Cancellation target is missing or belongs to another account.
    Both cases share one message so other accounts' bookings stay invisible.
    """

    def __init__(self):
        super().__init__(
            message="Reservation not found",
            code="RESERVATION_NOT_FOUND",
            status_code=404,
        )


class AuthErrorKind(str, Enum):
    UNKNOWN_EMAIL = "unknown_email"
    BAD_CREDENTIAL = "bad_credential"
    UNVERIFIED_ACCOUNT = "unverified_account"
    INVALID_TOKEN = "invalid_token"


class AuthError(TableBookingError):
    def __init__(self, kind: AuthErrorKind, message: str, status_code: int = 401, code: str = "INVALID_CREDENTIALS"):
        self.kind = kind
        super().__init__(message=message, code=code, status_code=status_code)


class VerificationErrorKind(str, Enum):
    INVALID = "invalid"
    EXPIRED = "expired"


class VerificationError(TableBookingError):
    def __init__(self, kind: VerificationErrorKind):
        self.kind = kind
        if kind is VerificationErrorKind.EXPIRED:
            super().__init__(
                message="Verification link has expired, please register again",
                code="VERIFICATION_EXPIRED",
                status_code=410,
            )
        else:
            super().__init__(
                message="Verification link is invalid",
                code="VERIFICATION_INVALID",
                status_code=400,
            )


class EmailAlreadyRegisteredError(TableBookingError):
    def __init__(self):
        super().__init__(
            message="Email already registered",
            code="EMAIL_ALREADY_REGISTERED",
            status_code=409,
        )


class MailError(TableBookingError):
    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            message="Mail delivery failed",
            code="MAIL_ERROR",
            status_code=502,
            detail=detail,
        )


class TransientInfraError(TableBookingError):
    """Database or another backing service is unreachable. Not retried by the core."""

    def __init__(self, service: str, detail: Optional[str] = None):
        self.service = service
        super().__init__(
            message="Service temporarily unavailable, please try again",
            code="SERVICE_UNAVAILABLE",
            status_code=503,
            detail=detail,
        )
