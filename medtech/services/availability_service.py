"""Availability calculation for specialist booking slots."""

from collections import Counter
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.config import settings
from medtech.core.timeutils import (
    clinic_day_bounds,
    clinic_today,
    clinic_tz,
    ensure_utc,
    slot_start,
    utcnow,
)
from medtech.models.consultations import consultations
from medtech.schemas.availability import DayAvailability, TimeSlotAvailability
from medtech.schemas.bookings import ACTIVE_BOOKING_STATUSES


class AvailabilityService:
    """
    Derives bookable days and slots from existing bookings.

    Results are advisory: nothing is locked, and a slot reported free may be
    taken before the reservation is written. The unique index on
    ``consultations`` is what finally arbitrates.
    """

    def __init__(self, db: AsyncSession, time_slots: list[str] | None = None):
        """Initialize service with database session and slot catalogue."""
        self.db = db
        self.time_slots = list(time_slots or settings.time_slots)

    async def _active_start_times(
        self,
        specialist_id: UUID,
        start: datetime,
        end: datetime,
    ) -> list[datetime]:
        """Start times of active bookings for the specialist in ``[start, end)``."""
        stmt = select(consultations.c.scheduled_at).where(
            and_(
                consultations.c.specialist_id == specialist_id,
                consultations.c.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
                consultations.c.scheduled_at >= start,
                consultations.c.scheduled_at < end,
            )
        )
        result = await self.db.execute(stmt)
        return [ensure_utc(row.scheduled_at) for row in result.fetchall()]

    def _remaining_slots(self, day: date, now: datetime) -> int:
        """Catalogue slots on ``day`` that have not started yet."""
        return sum(1 for slot in self.time_slots if slot_start(day, slot) > now)

    async def compute_available_days(
        self,
        specialist_id: UUID,
        window_days: int | None = None,
        include_saturated: bool = False,
        now: datetime | None = None,
    ) -> list[DayAvailability]:
        """
        Compute candidate booking days for a specialist.

        Args:
            specialist_id: Specialist to book
            window_days: Number of calendar days to look ahead, today included
            include_saturated: Also return fully booked days (flagged as such)
            now: Reference time, defaults to the current time

        Returns:
            Weekdays in ascending order, each flagged with whether a slot is free
        """
        now = ensure_utc(now or utcnow())
        window_days = window_days or settings.booking_window_days
        today = clinic_today(now)

        candidates = [
            day
            for day in (today + timedelta(days=offset) for offset in range(window_days))
            if day.weekday() < 5
        ]
        if not candidates:
            return []

        window_start, _ = clinic_day_bounds(candidates[0])
        _, window_end = clinic_day_bounds(candidates[-1])
        booked = await self._active_start_times(specialist_id, window_start, window_end)

        tz = clinic_tz()
        per_day = Counter(start.astimezone(tz).date() for start in booked)

        days: list[DayAvailability] = []
        for day in candidates:
            saturated = per_day[day] >= len(self.time_slots)
            if saturated and not include_saturated:
                continue
            # Elapsed slots only matter on the current day
            has_free = not saturated and (day != today or self._remaining_slots(day, now) > 0)
            days.append(DayAvailability(date=day, has_free_slots=has_free))

        return days

    async def compute_available_slots(
        self,
        specialist_id: UUID,
        day: date,
        now: datetime | None = None,
    ) -> list[TimeSlotAvailability]:
        """
        Mark each catalogue slot on ``day`` as free or taken.

        A slot is taken when an active booking starts at exactly that time,
        or when it has already started.
        """
        now = ensure_utc(now or utcnow())
        start, end = clinic_day_bounds(day)
        booked = set(await self._active_start_times(specialist_id, start, end))

        slots = []
        for slot in self.time_slots:
            starts_at = slot_start(day, slot)
            slots.append(
                TimeSlotAvailability(
                    time=slot,
                    available=starts_at not in booked and starts_at > now,
                )
            )
        return slots
