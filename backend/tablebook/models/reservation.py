"""
Reservation model.

Key design decisions:
- The slot key is (table_id, reservation_date, reservation_time)
- A partial unique index over the slot key, restricted to status = 'active',
  is what actually prevents double booking; the availability pre-check only
  spares the database an insert that would fail anyway
- Cancellation flips status instead of deleting, which drops the row out of
  the partial index and frees the slot while keeping history
"""

from sqlalchemy import (
    Column, Integer, String, Date, Time, DateTime, ForeignKey, Index, CheckConstraint, text,
)

from tablebook.db.base import Base, TimestampMixin

STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"

ACTIVE_SLOT_INDEX = "uq_reservations_active_slot"


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    table_id = Column(Integer, nullable=False)
    party_size = Column(Integer, nullable=False)
    reservation_date = Column(Date, nullable=False)
    reservation_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_ACTIVE)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            ACTIVE_SLOT_INDEX,
            "table_id",
            "reservation_date",
            "reservation_time",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_reservations_date_time", "reservation_date", "reservation_time"),
        CheckConstraint("party_size > 0", name="check_reservation_party_size_positive"),
        CheckConstraint("table_id > 0", name="check_reservation_table_id_positive"),
        CheckConstraint("status IN ('active', 'cancelled')", name="check_reservation_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, table={self.table_id}, "
            f"slot={self.reservation_date} {self.reservation_time}, status={self.status})>"
        )
