"""Time helpers shared by the booking services."""

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

from medtech.config import settings


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def clinic_tz() -> ZoneInfo:
    """Timezone in which the slot catalogue is expressed."""
    return ZoneInfo(settings.clinic_timezone)


def parse_slot(value: str) -> time:
    """Parse an ``HH:MM`` slot label."""
    return time.fromisoformat(value)


def slot_start(day: date, slot: str) -> datetime:
    """UTC start of ``slot`` on the clinic's calendar ``day``."""
    local = datetime.combine(day, parse_slot(slot), tzinfo=clinic_tz())
    return local.astimezone(UTC)


def clinic_today(now: datetime | None = None) -> date:
    """Today's date on the clinic's wall clock."""
    return ensure_utc(now or utcnow()).astimezone(clinic_tz()).date()


def clinic_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a clinic calendar day."""
    tz = clinic_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.fromordinal(day.toordinal() + 1).replace(tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)
