"""Tests for the reservation writer."""

from datetime import timedelta
from uuid import uuid4

import pytest

from medtech.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    SlotUnavailableException,
)
from medtech.core.timeutils import slot_start, utcnow
from medtech.schemas.bookings import BookingStatus
from medtech.services.reservation_service import ReservationService


async def _provisional(service, test_user, test_specialist, booking_day, reference="REF-1"):
    return await service.create_provisional_booking(
        patient_id=test_user["id"],
        specialist_id=test_specialist["id"],
        scheduled_at=slot_start(booking_day, "10:00"),
        payment_reference=reference,
        amount=2500,
        order_tracking_id=f"order-{reference}",
    )


@pytest.mark.asyncio
async def test_create_is_always_pending(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """New bookings start out awaiting payment."""
    service = ReservationService(db_session)
    booking = await _provisional(service, test_user, test_specialist, booking_day)

    assert booking.status == BookingStatus.PENDING_PAYMENT
    assert booking.payment_reference == "REF-1"
    assert booking.payment_amount == 2500
    assert booking.scheduled_at == slot_start(booking_day, "10:00")

    stored = await service.get_by_payment_reference("REF-1")
    assert stored.id == booking.id


@pytest.mark.asyncio
async def test_second_booking_for_slot_rejected(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """Only one active booking may hold a specialist's slot."""
    service = ReservationService(db_session)
    await _provisional(service, test_user, test_specialist, booking_day, "REF-1")

    with pytest.raises(SlotUnavailableException):
        await _provisional(service, test_user, test_specialist, booking_day, "REF-2")

    assert await service.get_by_payment_reference("REF-2") is None


@pytest.mark.asyncio
async def test_cancelled_booking_frees_slot(
    db_session, test_user, test_specialist, booking_day, insert_booking
) -> None:
    """A cancelled booking does not block a new one for the same slot."""
    await insert_booking(
        test_user["id"],
        test_specialist["id"],
        slot_start(booking_day, "10:00"),
        status="cancelled",
    )

    service = ReservationService(db_session)
    booking = await _provisional(service, test_user, test_specialist, booking_day)
    assert booking.status == BookingStatus.PENDING_PAYMENT


@pytest.mark.asyncio
async def test_promote_is_idempotent(db_session, test_user, test_specialist, booking_day) -> None:
    """Promoting twice leaves one scheduled booking."""
    service = ReservationService(db_session)
    await _provisional(service, test_user, test_specialist, booking_day)

    first = await service.promote_to_scheduled("REF-1", "MpesaKE")
    second = await service.promote_to_scheduled("REF-1")

    assert first.status == BookingStatus.SCHEDULED
    assert first.payment_status == "COMPLETED"
    assert first.payment_method == "MpesaKE"
    assert first.settled_reference == "REF-1"
    assert second.status == BookingStatus.SCHEDULED
    assert second.updated_at == first.updated_at


@pytest.mark.asyncio
async def test_promote_unknown_reference(db_session) -> None:
    """Promoting a reference nobody holds is an error."""
    service = ReservationService(db_session)
    with pytest.raises(NotFoundException):
        await service.promote_to_scheduled("MISSING")


@pytest.mark.asyncio
async def test_promote_cancelled_booking_refused(
    db_session, test_user, test_specialist, booking_day, insert_booking
) -> None:
    """A cancelled booking is never revived by a late payment."""
    await insert_booking(
        test_user["id"],
        test_specialist["id"],
        slot_start(booking_day, "10:00"),
        status="cancelled",
        payment_reference="REF-OLD",
    )

    service = ReservationService(db_session)
    with pytest.raises(ConflictException):
        await service.promote_to_scheduled("REF-OLD")


@pytest.mark.asyncio
async def test_record_non_completed_status(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """Statuses other than COMPLETED are mirrored but keep the booking pending."""
    service = ReservationService(db_session)
    await _provisional(service, test_user, test_specialist, booking_day)

    booking = await service.record_payment_status("REF-1", "PENDING")
    assert booking.status == BookingStatus.PENDING_PAYMENT
    assert booking.payment_status == "PENDING"

    booking = await service.record_payment_status("REF-1", "FAILED")
    assert booking.status == BookingStatus.PENDING_PAYMENT
    assert booking.payment_status == "FAILED"


@pytest.mark.asyncio
async def test_record_completed_promotes(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """COMPLETED schedules the booking, and a later status does not undo it."""
    service = ReservationService(db_session)
    await _provisional(service, test_user, test_specialist, booking_day)

    booking = await service.record_payment_status("REF-1", "COMPLETED", "Visa")
    assert booking.status == BookingStatus.SCHEDULED

    booking = await service.record_payment_status("REF-1", "PENDING")
    assert booking.status == BookingStatus.SCHEDULED
    assert booking.payment_status == "COMPLETED"


@pytest.mark.asyncio
async def test_get_booking_checks_owner(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """Bookings are only visible to their patient."""
    service = ReservationService(db_session)
    booking = await _provisional(service, test_user, test_specialist, booking_day)

    assert (await service.get_booking(booking.id, test_user["id"])).id == booking.id
    with pytest.raises(ForbiddenException):
        await service.get_booking(booking.id, uuid4())
    with pytest.raises(NotFoundException):
        await service.get_booking(uuid4(), test_user["id"])


@pytest.mark.asyncio
async def test_supersede_moves_slot_to_new_reference(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """Superseding cancels the old attempt and keeps the slot held."""
    service = ReservationService(db_session)
    original = await _provisional(service, test_user, test_specialist, booking_day)

    replacement = await service.supersede_booking(
        original, payment_reference="REF-2", order_tracking_id="order-2", amount=2500
    )

    assert replacement.status == BookingStatus.PENDING_PAYMENT
    assert replacement.scheduled_at == original.scheduled_at
    assert replacement.payment_reference == "REF-2"

    old = await service.get_by_payment_reference("REF-1")
    assert old.status == BookingStatus.CANCELLED
    assert old.superseded_by == replacement.id
    assert old.cancelled_at is not None

    # Someone else still cannot take the slot
    with pytest.raises(SlotUnavailableException):
        await _provisional(service, test_user, test_specialist, booking_day, "REF-3")


@pytest.mark.asyncio
async def test_supersede_requires_pending(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """A booking that is no longer pending cannot be superseded."""
    service = ReservationService(db_session)
    original = await _provisional(service, test_user, test_specialist, booking_day)
    await service.promote_to_scheduled("REF-1")

    with pytest.raises(ConflictException):
        await service.supersede_booking(
            original, payment_reference="REF-2", order_tracking_id="order-2", amount=2500
        )
    assert await service.get_by_payment_reference("REF-2") is None


@pytest.mark.asyncio
async def test_promote_follows_superseded_chain(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """Payment on a replaced attempt promotes the booking that currently holds the slot."""
    service = ReservationService(db_session)
    original = await _provisional(service, test_user, test_specialist, booking_day)
    second = await service.supersede_booking(
        original, payment_reference="REF-2", order_tracking_id="order-2", amount=2500
    )
    third = await service.supersede_booking(
        second, payment_reference="REF-3", order_tracking_id="order-3", amount=2500
    )

    promoted = await service.promote_to_scheduled("REF-1", "MpesaKE")

    assert promoted.id == third.id
    assert promoted.status == BookingStatus.SCHEDULED
    assert promoted.settled_reference == "REF-1"
    assert promoted.payment_reference == "REF-3"
    assert (await service.get_by_payment_reference("REF-1")).status == BookingStatus.CANCELLED
    assert (await service.get_by_payment_reference("REF-2")).status == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_promote_refused_when_replacement_cancelled(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """A replacement that was itself cancelled is not revived by a late payment."""
    service = ReservationService(db_session)
    original = await _provisional(service, test_user, test_specialist, booking_day)
    await service.supersede_booking(
        original, payment_reference="REF-2", order_tracking_id="order-2", amount=2500
    )
    assert await service.expire_booking("REF-2") is True

    with pytest.raises(ConflictException):
        await service.promote_to_scheduled("REF-1")


@pytest.mark.asyncio
async def test_find_abandoned_bookings(
    db_session, test_user, test_specialist, booking_day, insert_booking
) -> None:
    """Only pending bookings older than the cutoff are candidates, oldest first."""
    now = utcnow()
    for time, reference, status, age in [
        ("09:00", "STALE", "pending_payment", timedelta(hours=3)),
        ("10:00", "OLDEST", "pending_payment", timedelta(hours=5)),
        ("11:00", "FRESH", "pending_payment", timedelta(0)),
        ("12:00", "PAID", "scheduled", timedelta(hours=3)),
    ]:
        await insert_booking(
            test_user["id"],
            test_specialist["id"],
            slot_start(booking_day, time),
            status=status,
            payment_reference=reference,
            created_at=now - age,
        )

    service = ReservationService(db_session)
    abandoned = await service.find_abandoned_bookings(now - timedelta(hours=1))

    assert [b.payment_reference for b in abandoned] == ["OLDEST", "STALE"]


@pytest.mark.asyncio
async def test_expire_booking_only_while_pending(
    db_session, test_user, test_specialist, booking_day
) -> None:
    """Expiry cancels an unpaid booking but never a scheduled one."""
    service = ReservationService(db_session)
    await _provisional(service, test_user, test_specialist, booking_day, "REF-1")

    assert await service.expire_booking("REF-1") is True
    expired = await service.get_by_payment_reference("REF-1")
    assert expired.status == BookingStatus.CANCELLED
    assert expired.payment_status == "EXPIRED"
    assert expired.cancelled_at is not None

    paid = await service.create_provisional_booking(
        patient_id=test_user["id"],
        specialist_id=test_specialist["id"],
        scheduled_at=slot_start(booking_day, "11:00"),
        payment_reference="REF-PAID",
        amount=2500,
    )
    await service.promote_to_scheduled(paid.payment_reference)

    assert await service.expire_booking("REF-PAID") is False
    assert (await service.get_by_payment_reference("REF-PAID")).status == BookingStatus.SCHEDULED
