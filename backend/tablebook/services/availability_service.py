"""
Slot availability lookups.

Everything returned here is stale the moment it is returned. It exists to
give users a quick "already booked" answer and to let the admitter skip a
doomed insert; it is never what decides whether a reservation commits.
"""

from datetime import date, time

from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.infrastructure import reservation_store
from tablebook.services.reservation_validator import ReservationSlot


async def is_slot_taken(db: AsyncSession, slot: ReservationSlot) -> bool:
    existing = await reservation_store.find_active_reservation(
        db, slot.table_id, slot.reservation_date, slot.reservation_time
    )
    return existing is not None


async def free_tables(
    db: AsyncSession,
    reservation_date: date,
    reservation_time: time,
    table_amount: int,
) -> list[int]:
    occupied = await reservation_store.list_occupied_tables(db, reservation_date, reservation_time)
    return [table_id for table_id in range(1, table_amount + 1) if table_id not in occupied]
