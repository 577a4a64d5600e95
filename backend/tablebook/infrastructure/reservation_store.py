"""
Reservation persistence.

The store is the only place that knows how the "one active reservation per
slot" invariant is enforced: insert_reservation relies on the partial unique
index and turns its violation into SlotConflictError, so callers never have
to trust an earlier availability read.
"""

from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.core.exceptions import NotFoundOrForbiddenError, SlotConflictError
from tablebook.core.logging import get_logger
from tablebook.infrastructure.db_errors import database_errors
from tablebook.models.reservation import (
    ACTIVE_SLOT_INDEX,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    Reservation,
)

logger = get_logger(__name__)


def _is_active_slot_violation(exc: IntegrityError) -> bool:
    # PostgreSQL names the index; SQLite lists the indexed columns
    message = str(exc.orig).lower()
    return ACTIVE_SLOT_INDEX in message or (
        "unique" in message and "reservations.table_id" in message
    )


async def find_active_reservation(
    db: AsyncSession,
    table_id: int,
    reservation_date: date,
    reservation_time: time,
) -> Optional[Reservation]:
    with database_errors("find_active_reservation"):
        result = await db.execute(
            select(Reservation).where(
                Reservation.table_id == table_id,
                Reservation.reservation_date == reservation_date,
                Reservation.reservation_time == reservation_time,
                Reservation.status == STATUS_ACTIVE,
            )
        )
    return result.scalar_one_or_none()


async def list_occupied_tables(
    db: AsyncSession,
    reservation_date: date,
    reservation_time: time,
) -> set[int]:
    with database_errors("list_occupied_tables"):
        result = await db.execute(
            select(Reservation.table_id).where(
                Reservation.reservation_date == reservation_date,
                Reservation.reservation_time == reservation_time,
                Reservation.status == STATUS_ACTIVE,
            )
        )
    return set(result.scalars().all())


async def insert_reservation(db: AsyncSession, reservation: Reservation) -> Reservation:
    """
    Insert and commit a new active reservation.
    Raises SlotConflictError when another active reservation already holds the slot.
    """
    reservation.status = STATUS_ACTIVE
    db.add(reservation)
    try:
        with database_errors("insert_reservation"):
            await db.flush()
            await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if _is_active_slot_violation(exc):
            raise SlotConflictError() from exc
        raise
    return reservation


async def cancel_reservation(
    db: AsyncSession,
    table_id: int,
    reservation_date: date,
    reservation_time: time,
    account_id: int,
    cancelled_at: datetime,
) -> Reservation:
    """
    Cancel the requester's active reservation on a slot in one conditional UPDATE.
    Raises NotFoundOrForbiddenError if there is none, including when the slot
    is held by a different account.
    """
    stmt = (
        update(Reservation)
        .where(
            Reservation.table_id == table_id,
            Reservation.reservation_date == reservation_date,
            Reservation.reservation_time == reservation_time,
            Reservation.account_id == account_id,
            Reservation.status == STATUS_ACTIVE,
        )
        .values(status=STATUS_CANCELLED, cancelled_at=cancelled_at)
        .returning(Reservation)
        .execution_options(synchronize_session="fetch")
    )
    with database_errors("cancel_reservation"):
        result = await db.execute(stmt)
        reservation = result.scalar_one_or_none()
        if reservation is None:
            await db.rollback()
            raise NotFoundOrForbiddenError()
        await db.commit()
    return reservation


async def list_reservations_for_account(
    db: AsyncSession,
    account_id: int,
    include_cancelled: bool = False,
) -> list[Reservation]:
    query = select(Reservation).where(Reservation.account_id == account_id)
    if not include_cancelled:
        query = query.where(Reservation.status == STATUS_ACTIVE)
    query = query.order_by(Reservation.reservation_date.asc(), Reservation.reservation_time.asc())

    with database_errors("list_reservations_for_account"):
        result = await db.execute(query)
    return list(result.scalars().all())
