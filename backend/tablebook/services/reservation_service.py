"""
Reservation admission and cancellation.

CONCURRENCY STRATEGY: Constraint-authoritative insert
=====================================================

Problem:
  Two guests ask for table 3 at 19:00 on the same evening at the same time.
  Both read "no active reservation for that slot", both insert.
  Result: a double-booked table.

Solution:
  The database holds a partial unique index on
  (table_id, reservation_date, reservation_time) WHERE status = 'active'.

  1. Validate the raw request (pure, no I/O)
  2. Look the slot up; if it is taken, reject right away
  3. INSERT the reservation and COMMIT
  4. If the INSERT violates the index, someone committed between 2 and 3:
     roll back and reject with the very same SlotConflictError as step 2

  Step 2 is only a shortcut for the common case. Step 3 is the one that
  decides: for any slot, exactly one INSERT can succeed no matter how many
  processes or servers race for it, and every loser sees a conflict.

  Nothing is retried. A conflict is final for that slot, and a database
  outage surfaces as TransientInfraError for the caller to deal with.

Admission states:
  RECEIVED -> VALIDATED -> CHECKED -> COMMITTED
  any of the first three -> REJECTED
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.core.exceptions import (
    NotFoundOrForbiddenError,
    SlotConflictError,
    TableBookingError,
    TransientInfraError,
)
from tablebook.core.logging import get_logger
from tablebook.core.metrics import admission_latency, record_admission, record_cancellation, record_conflict
from tablebook.infrastructure import reservation_store
from tablebook.models.reservation import Reservation
from tablebook.services import availability_service
from tablebook.services.reservation_validator import (
    ReservationRequest,
    ReservationRules,
    invalid_date_error,
    invalid_time_error,
    parse_date,
    parse_int,
    parse_time,
    validate_reservation_request,
)

logger = get_logger(__name__)


class AdmissionState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    CHECKED = "checked"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass
class AdmissionResult:
    state: AdmissionState
    reservation: Optional[Reservation] = None
    error: Optional[TableBookingError] = None
    rejected_at: Optional[AdmissionState] = None

    @property
    def committed(self) -> bool:
        return self.state is AdmissionState.COMMITTED


def _reject(stage: AdmissionState, error: TableBookingError) -> AdmissionResult:
    return AdmissionResult(state=AdmissionState.REJECTED, error=error, rejected_at=stage)


async def admit_reservation(
    db: AsyncSession,
    account_id: int,
    request: ReservationRequest,
    now: datetime,
    rules: ReservationRules,
) -> AdmissionResult:
    """
    Run one admission attempt to completion.
    Returns a COMMITTED result with the stored reservation or a REJECTED
    result carrying the validation or conflict error. Raises
    TransientInfraError only when the database itself is unavailable.
    """
    started = time.perf_counter()
    try:
        result = await _admit(db, account_id, request, now, rules)
    except TransientInfraError:
        record_admission("error")
        raise
    finally:
        admission_latency.observe(time.perf_counter() - started)

    if result.committed:
        record_admission("committed")
    elif isinstance(result.error, SlotConflictError):
        record_admission("rejected_conflict")
    else:
        record_admission("rejected_validation")
    return result


async def _admit(
    db: AsyncSession,
    account_id: int,
    request: ReservationRequest,
    now: datetime,
    rules: ReservationRules,
) -> AdmissionResult:
    # RECEIVED -> VALIDATED
    outcome = validate_reservation_request(request, now, rules)
    if not outcome.accepted:
        logger.info(
            "reservation_rejected",
            account_id=account_id,
            stage=AdmissionState.RECEIVED.value,
            field=outcome.error.field,
            rule=outcome.error.rule.value,
        )
        return _reject(AdmissionState.RECEIVED, outcome.error)

    slot = outcome.slot
    slot_context = {
        "account_id": account_id,
        "table_id": slot.table_id,
        "date": slot.reservation_date.isoformat(),
        "time": slot.reservation_time.strftime("%H:%M"),
    }

    # VALIDATED -> CHECKED
    if await availability_service.is_slot_taken(db, slot):
        record_conflict("precheck")
        logger.info("reservation_rejected", stage=AdmissionState.VALIDATED.value, reason="slot_taken", **slot_context)
        return _reject(AdmissionState.VALIDATED, SlotConflictError())

    # CHECKED -> COMMITTED
    reservation = Reservation(
        account_id=account_id,
        table_id=slot.table_id,
        party_size=outcome.party_size,
        reservation_date=slot.reservation_date,
        reservation_time=slot.reservation_time,
    )
    try:
        reservation = await reservation_store.insert_reservation(db, reservation)
    except SlotConflictError as exc:
        record_conflict("constraint")
        logger.info("reservation_rejected", stage=AdmissionState.CHECKED.value, reason="lost_race", **slot_context)
        return _reject(AdmissionState.CHECKED, exc)

    logger.info(
        "reservation_committed",
        reservation_id=reservation.id,
        party_size=reservation.party_size,
        **slot_context,
    )
    return AdmissionResult(state=AdmissionState.COMMITTED, reservation=reservation)


async def cancel_reservation(
    db: AsyncSession,
    account_id: int,
    table_id,
    reservation_date,
    reservation_time,
) -> Reservation:
    """
    Cancel the requesting account's active reservation on a slot.

    The slot key arrives raw, like an admission request. Malformed keys raise
    ReservationValidationError; a slot that is free or held by another
    account raises NotFoundOrForbiddenError, the two being indistinguishable
    to the caller.
    """
    parsed_table = parse_int(table_id)
    parsed_date = parse_date(reservation_date)
    parsed_time = parse_time(reservation_time)
    if parsed_date is None:
        raise invalid_date_error()
    if parsed_time is None:
        raise invalid_time_error()
    if parsed_table is None:
        record_cancellation("not_found")
        raise NotFoundOrForbiddenError()

    try:
        reservation = await reservation_store.cancel_reservation(
            db,
            parsed_table,
            parsed_date,
            parsed_time,
            account_id,
            cancelled_at=datetime.now(timezone.utc),
        )
    except NotFoundOrForbiddenError:
        record_cancellation("not_found")
        logger.info(
            "reservation_cancel_rejected",
            account_id=account_id,
            table_id=parsed_table,
            date=parsed_date.isoformat(),
            time=parsed_time.strftime("%H:%M"),
        )
        raise

    record_cancellation("cancelled")
    logger.info(
        "reservation_cancelled",
        reservation_id=reservation.id,
        account_id=account_id,
        table_id=reservation.table_id,
        date=reservation.reservation_date.isoformat(),
        time=reservation.reservation_time.strftime("%H:%M"),
    )
    return reservation


async def list_account_reservations(
    db: AsyncSession,
    account_id: int,
    include_cancelled: bool = False,
) -> list[Reservation]:
    """Reservations of one account, read fresh from the database on every call."""
    return await reservation_store.list_reservations_for_account(db, account_id, include_cancelled)
