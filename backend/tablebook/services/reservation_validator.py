"""
Reservation request validator.

Pure function of (raw request, now, rules): no I/O, no clock of its own.
Rules are checked in a fixed order and the first failure is returned, so a
user only ever sees one problem at a time:

  1. party size is an integer in [1, PEOPLE_AMOUNT]
  2. table id is an integer in [1, TABLE_AMOUNT]
  3. date is YYYY-MM-DD and a real calendar date
  4. time is 24-hour HH:MM
  5. date + time in the business timezone is strictly after now
  6. the hour is inside the opening window, which may wrap past midnight
     (18:00-05:59 by default)
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo

from tablebook.core.config import Settings
from tablebook.core.exceptions import ReservationValidationError, ValidationRule

_INTEGER_RE = re.compile(r"\s*[+-]?\d+\s*", re.ASCII)
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_TIME_RE = re.compile(r"([01]\d|2[0-3]):([0-5]\d)", re.ASCII)


@dataclass(frozen=True)
class ReservationRules:
    people_amount: int
    table_amount: int
    opening_hour: int
    closing_hour: int
    tz: tzinfo

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReservationRules":
        return cls(
            people_amount=settings.PEOPLE_AMOUNT,
            table_amount=settings.TABLE_AMOUNT,
            opening_hour=settings.OPENING_HOUR,
            closing_hour=settings.CLOSING_HOUR,
            tz=ZoneInfo(settings.BUSINESS_TIMEZONE),
        )

    def is_open_at(self, hour: int) -> bool:
        if self.opening_hour < self.closing_hour:
            return self.opening_hour <= hour < self.closing_hour
        return hour >= self.opening_hour or hour < self.closing_hour


@dataclass(frozen=True)
class ReservationRequest:
    """Raw, unvalidated input. Values may be ints or strings straight off a form."""

    party_size: Any
    table_id: Any
    date: Any
    time: Any


@dataclass(frozen=True)
class ReservationSlot:
    table_id: int
    reservation_date: date
    reservation_time: time


@dataclass(frozen=True)
class ValidationOutcome:
    accepted: bool
    slot: Optional[ReservationSlot] = None
    party_size: Optional[int] = None
    error: Optional[ReservationValidationError] = None

    @classmethod
    def reject(cls, field: str, rule: ValidationRule, message: str) -> "ValidationOutcome":
        return cls(accepted=False, error=ReservationValidationError(field, rule, message))


def parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_RE.fullmatch(value):
        return int(value)
    return None


def parse_date(value: Any) -> Optional[date]:
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_time(value: Any) -> Optional[time]:
    if not isinstance(value, str):
        return None
    match = _TIME_RE.fullmatch(value)
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)))


def invalid_date_error() -> ReservationValidationError:
    return ReservationValidationError("date", ValidationRule.INVALID_DATE, "Date must be a valid date in YYYY-MM-DD format")


def invalid_time_error() -> ReservationValidationError:
    return ReservationValidationError("time", ValidationRule.INVALID_TIME, "Time must be in 24-hour HH:MM format")


def validate_reservation_request(
    request: ReservationRequest,
    now: datetime,
    rules: ReservationRules,
) -> ValidationOutcome:
    party_size = parse_int(request.party_size)
    if party_size is None:
        return ValidationOutcome.reject(
            "party_size", ValidationRule.PARTY_SIZE_NOT_INTEGER, "Party size must be a whole number"
        )
    if not 1 <= party_size <= rules.people_amount:
        return ValidationOutcome.reject(
            "party_size",
            ValidationRule.PARTY_SIZE_OUT_OF_RANGE,
            f"Party size must be between 1 and {rules.people_amount}",
        )

    table_id = parse_int(request.table_id)
    if table_id is None:
        return ValidationOutcome.reject(
            "table_id", ValidationRule.TABLE_ID_NOT_INTEGER, "Table number must be a whole number"
        )
    if not 1 <= table_id <= rules.table_amount:
        return ValidationOutcome.reject(
            "table_id",
            ValidationRule.TABLE_ID_OUT_OF_RANGE,
            f"Table number must be between 1 and {rules.table_amount}",
        )

    reservation_date = parse_date(request.date)
    if reservation_date is None:
        return ValidationOutcome(accepted=False, error=invalid_date_error())

    reservation_time = parse_time(request.time)
    if reservation_time is None:
        return ValidationOutcome(accepted=False, error=invalid_time_error())

    starts_at = datetime.combine(reservation_date, reservation_time, tzinfo=rules.tz)
    if starts_at <= now:
        return ValidationOutcome.reject(
            "time", ValidationRule.NOT_IN_FUTURE, "Reservation must be for a future date and time"
        )

    if not rules.is_open_at(reservation_time.hour):
        return ValidationOutcome.reject(
            "time",
            ValidationRule.OUTSIDE_OPENING_HOURS,
            f"We are open from {rules.opening_hour:02d}:00 to {rules.closing_hour:02d}:00",
        )

    return ValidationOutcome(
        accepted=True,
        slot=ReservationSlot(table_id, reservation_date, reservation_time),
        party_size=party_size,
    )
