"""
Reservation endpoints: admission, cancellation, own reservations, availability.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.core.clock import Clock, get_clock
from tablebook.core.config import Settings, get_settings
from tablebook.core.security import get_current_account_id
from tablebook.db.session import get_db
from tablebook.schemas.reservation import (
    AvailabilityResponse,
    ReservationCancel,
    ReservationCancelResponse,
    ReservationCreate,
    ReservationResponse,
)
from tablebook.services import availability_service, reservation_service
from tablebook.services.reservation_validator import (
    ReservationRequest,
    ReservationRules,
    invalid_date_error,
    invalid_time_error,
    parse_date,
    parse_time,
)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


def get_reservation_rules(settings: Settings = Depends(get_settings)) -> ReservationRules:
    return ReservationRules.from_settings(settings)


@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    reservation_data: ReservationCreate,
    account_id: int = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    rules: ReservationRules = Depends(get_reservation_rules),
):
    """
    Reserve a table.

    Returns 422 with the first broken rule, or 409 if the table is already
    booked for that date and time, including when another guest booked it a
    moment earlier.
    """
    request = ReservationRequest(
        party_size=reservation_data.party_size,
        table_id=reservation_data.table_id,
        date=reservation_data.date,
        time=reservation_data.time,
    )
    result = await reservation_service.admit_reservation(db, account_id, request, clock.now(), rules)
    if not result.committed:
        raise result.error
    return result.reservation


@router.post("/cancel", response_model=ReservationCancelResponse)
async def cancel_reservation(
    cancel_data: ReservationCancel,
    account_id: int = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel one of your reservations, freeing the table for that slot."""
    reservation = await reservation_service.cancel_reservation(
        db, account_id, cancel_data.table_id, cancel_data.date, cancel_data.time
    )
    return ReservationCancelResponse(
        message="Reservation cancelled",
        reservation=ReservationResponse.model_validate(reservation),
    )


@router.get("/", response_model=list[ReservationResponse])
async def list_my_reservations(
    include_cancelled: bool = Query(False),
    account_id: int = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """Reservations of the authenticated account."""
    return await reservation_service.list_account_reservations(db, account_id, include_cancelled)


@router.get("/availability", response_model=AvailabilityResponse)
async def availability(
    date: str = Query(...),
    time: str = Query(...),
    table_id: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    rules: ReservationRules = Depends(get_reservation_rules),
):
    """
    Free tables for a date and time. Advisory only: a table listed as free
    can still be taken before your reservation is submitted.
    """
    reservation_date = parse_date(date)
    if reservation_date is None:
        raise invalid_date_error()
    reservation_time = parse_time(time)
    if reservation_time is None:
        raise invalid_time_error()

    free = await availability_service.free_tables(db, reservation_date, reservation_time, rules.table_amount)
    response = AvailabilityResponse(
        reservation_date=reservation_date,
        reservation_time=time,
        free_tables=free,
    )
    if table_id is not None:
        response.table_id = table_id
        response.available = table_id in free
    return response
