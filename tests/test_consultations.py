"""Tests for the consultation list projector."""

from datetime import UTC, date, datetime, timedelta
from uuid import uuid4

import pytest
import pytest_asyncio

from medtech.core.timeutils import slot_start
from medtech.schemas.bookings import BookingBucket, BookingStatus
from medtech.services.consultation_service import ConsultationService
from medtech.services.reservation_service import ReservationService

NOW = datetime(2024, 6, 12, 12, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def history(test_user, test_specialist, insert_booking) -> dict:
    """A patient's bookings around ``NOW``."""
    patient, specialist = test_user["id"], test_specialist["id"]
    return {
        "past": await insert_booking(patient, specialist, slot_start(date(2024, 6, 10), "09:00")),
        "marked_completed": await insert_booking(
            patient, specialist, slot_start(date(2024, 6, 11), "10:00"), status="completed"
        ),
        "pending": await insert_booking(
            patient,
            specialist,
            slot_start(date(2024, 6, 14), "09:00"),
            status="pending_payment",
        ),
        "scheduled": await insert_booking(
            patient, specialist, slot_start(date(2024, 6, 13), "15:00")
        ),
        "cancelled": await insert_booking(
            patient, specialist, slot_start(date(2024, 6, 13), "09:00"), status="cancelled"
        ),
        "cancelled_past": await insert_booking(
            patient, specialist, slot_start(date(2024, 6, 9), "09:00"), status="cancelled"
        ),
        "someone_else": await insert_booking(
            uuid4(), specialist, slot_start(date(2024, 6, 13), "11:00")
        ),
    }


@pytest.mark.asyncio
async def test_upcoming_bucket(db_session, test_user, history) -> None:
    """Upcoming lists future active bookings, soonest first."""
    service = ConsultationService(db_session)
    result = await service.list_bookings(test_user["id"], BookingBucket.UPCOMING, now=NOW)

    assert result.bucket == BookingBucket.UPCOMING
    assert [item.id for item in result.items] == [history["scheduled"], history["pending"]]
    assert result.total == 2

    scheduled, pending = result.items
    assert scheduled.payment_required is False
    assert pending.payment_required is True
    assert scheduled.specialist_name == "Dr. Amina Otieno"
    assert scheduled.specialist_specialty == "Dermatology"


@pytest.mark.asyncio
async def test_completed_bucket(db_session, test_user, history) -> None:
    """Completed lists finished or elapsed bookings, most recent first."""
    service = ConsultationService(db_session)
    result = await service.list_bookings(test_user["id"], BookingBucket.COMPLETED, now=NOW)

    assert [item.id for item in result.items] == [
        history["marked_completed"],
        history["past"],
        history["cancelled_past"],
    ]
    assert result.items[-1].status == BookingStatus.CANCELLED
    assert result.items[-1].payment_required is False


@pytest.mark.asyncio
async def test_future_cancelled_in_neither_bucket(db_session, test_user, history) -> None:
    """A cancelled booking that has not started yet is not listed."""
    service = ConsultationService(db_session)
    upcoming = await service.list_bookings(test_user["id"], BookingBucket.UPCOMING, now=NOW)
    completed = await service.list_bookings(test_user["id"], BookingBucket.COMPLETED, now=NOW)

    listed = {item.id for item in upcoming.items} | {item.id for item in completed.items}
    assert history["cancelled"] not in listed
    assert history["someone_else"] not in listed


@pytest.mark.asyncio
async def test_superseded_attempt_in_neither_bucket(
    db_session, test_user, test_specialist, history, insert_booking
) -> None:
    """A row replaced by a resumed payment attempt is not listed, even once elapsed."""
    replaced = await insert_booking(
        test_user["id"],
        test_specialist["id"],
        slot_start(date(2024, 6, 10), "09:00"),
        status="cancelled",
        superseded_by=history["past"],
    )
    service = ConsultationService(db_session)
    upcoming = await service.list_bookings(test_user["id"], BookingBucket.UPCOMING, now=NOW)
    completed = await service.list_bookings(test_user["id"], BookingBucket.COMPLETED, now=NOW)

    listed = {item.id for item in upcoming.items} | {item.id for item in completed.items}
    assert replaced not in listed
    assert history["past"] in listed


@pytest.mark.asyncio
async def test_paid_booking_moves_from_upcoming_to_completed(
    db_session, test_user, test_specialist
) -> None:
    """A booking created and paid through the writer is listed by the projector."""
    scheduled_at = slot_start(date(2024, 6, 20), "14:00")
    reservations = ReservationService(db_session)
    booking = await reservations.create_provisional_booking(
        patient_id=test_user["id"],
        specialist_id=test_specialist["id"],
        scheduled_at=scheduled_at,
        payment_reference="REF-LIFECYCLE",
        amount=2500,
        order_tracking_id="order-lifecycle",
    )
    service = ConsultationService(db_session)

    before = await service.list_bookings(test_user["id"], BookingBucket.UPCOMING, now=NOW)
    assert [item.id for item in before.items] == [booking.id]
    assert before.items[0].payment_required is True

    await reservations.promote_to_scheduled("REF-LIFECYCLE", "MpesaKE")

    upcoming = await service.list_bookings(test_user["id"], BookingBucket.UPCOMING, now=NOW)
    assert [item.id for item in upcoming.items] == [booking.id]
    assert upcoming.items[0].status == BookingStatus.SCHEDULED
    assert upcoming.items[0].payment_required is False
    assert upcoming.items[0].scheduled_at == scheduled_at

    later = scheduled_at + timedelta(hours=1)
    after_upcoming = await service.list_bookings(test_user["id"], BookingBucket.UPCOMING, now=later)
    after_completed = await service.list_bookings(
        test_user["id"], BookingBucket.COMPLETED, now=later
    )
    assert after_upcoming.items == []
    assert [item.id for item in after_completed.items] == [booking.id]


@pytest.mark.asyncio
async def test_next_upcoming(db_session, test_user, history) -> None:
    """The home screen shows the soonest upcoming consultation."""
    service = ConsultationService(db_session)

    item = await service.next_upcoming(test_user["id"], now=NOW)
    assert item.id == history["scheduled"]

    assert await service.next_upcoming(uuid4(), now=NOW) is None


@pytest.mark.asyncio
async def test_empty_history(db_session, test_user) -> None:
    """A patient without bookings gets empty lists."""
    service = ConsultationService(db_session)
    result = await service.list_bookings(test_user["id"], BookingBucket.UPCOMING, now=NOW)

    assert result.total == 0
    assert result.items == []
