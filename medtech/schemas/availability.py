"""Availability schemas."""

import datetime
from uuid import UUID

from pydantic import BaseModel


class DayAvailability(BaseModel):
    """A candidate calendar day."""

    date: datetime.date
    has_free_slots: bool


class TimeSlotAvailability(BaseModel):
    """One catalogue slot on a given day."""

    time: str
    available: bool


class AvailableDaysResponse(BaseModel):
    """Bookable days for a specialist."""

    specialist_id: UUID
    window_days: int
    days: list[DayAvailability]


class AvailableSlotsResponse(BaseModel):
    """Slot grid for a specialist on one day."""

    specialist_id: UUID
    day: datetime.date
    slots: list[TimeSlotAvailability]
