"""
Pydantic schemas for reservation request/response validation.

Request fields are deliberately loose (int or str): range, format, opening
hours and "in the future" are business rules enforced by the reservation
validator, which reports them as field/rule pairs instead of schema errors.
"""

from datetime import date, datetime, time
from typing import Optional, Union
from pydantic import BaseModel, field_serializer


class ReservationCreate(BaseModel):
    party_size: Union[int, str]
    table_id: Union[int, str]
    date: str
    time: str


class ReservationCancel(BaseModel):
    table_id: Union[int, str]
    date: str
    time: str


class ReservationResponse(BaseModel):
    id: int
    account_id: int
    table_id: int
    party_size: int
    reservation_date: date
    reservation_time: time
    status: str
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_serializer("reservation_time")
    def _ser_time(self, value: time) -> str:
        return value.strftime("%H:%M")


class ReservationCancelResponse(BaseModel):
    message: str
    reservation: ReservationResponse


class AvailabilityResponse(BaseModel):
    reservation_date: date
    reservation_time: str
    free_tables: list[int]
    table_id: Optional[int] = None
    available: Optional[bool] = None
