"""Reservation writer: provisional bookings and payment-driven status changes."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PersistenceException,
    SlotUnavailableException,
)
from medtech.core.timeutils import ensure_utc, utcnow
from medtech.models.consultations import consultations
from medtech.schemas.bookings import BookingResponse, BookingStatus, can_transition
from medtech.schemas.payments import COMPLETED_STATUS

logger = structlog.get_logger()

SLOT_INDEX_NAME = "uq_consultations_active_slot"


def _is_slot_conflict(error: IntegrityError) -> bool:
    """Tell the slot uniqueness violation apart from other constraint errors."""
    message = str(error.orig)
    return SLOT_INDEX_NAME in message or (
        "consultations.specialist_id" in message and "consultations.scheduled_at" in message
    )


class ReservationService:
    """Service for writing bookings and reconciling their payment state."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _insert_provisional(self, values: dict[str, Any]) -> BookingResponse:
        stmt = consultations.insert().values(**values).returning(consultations)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return BookingResponse.model_validate(dict(row._mapping))

    async def create_provisional_booking(
        self,
        patient_id: UUID,
        specialist_id: UUID,
        scheduled_at: datetime,
        payment_reference: str,
        amount: float,
        order_tracking_id: str | None = None,
        notes: str | None = None,
    ) -> BookingResponse:
        """
        Create a booking awaiting payment.

        The status is always ``pending_payment`` whatever the caller holds.

        Raises:
            SlotUnavailableException: If an active booking already holds the slot
            PersistenceException: If the store rejects the write
        """
        now = utcnow()
        values = {
            "id": uuid4(),
            "patient_id": patient_id,
            "specialist_id": specialist_id,
            "scheduled_at": ensure_utc(scheduled_at),
            "status": BookingStatus.PENDING_PAYMENT.value,
            "payment_reference": payment_reference,
            "order_tracking_id": order_tracking_id,
            "payment_amount": amount,
            "notes": notes,
            "created_at": now,
            "updated_at": now,
        }

        try:
            booking = await self._insert_provisional(values)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _is_slot_conflict(e):
                logger.warning(
                    "slot_taken",
                    specialist_id=str(specialist_id),
                    scheduled_at=values["scheduled_at"].isoformat(),
                )
                raise SlotUnavailableException() from e
            logger.error("booking_insert_rejected", reference=payment_reference, error=str(e))
            raise PersistenceException() from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("booking_insert_failed", reference=payment_reference, error=str(e))
            raise PersistenceException() from e

        logger.info(
            "provisional_booking_created",
            booking_id=str(booking.id),
            reference=payment_reference,
            order_tracking_id=order_tracking_id,
        )
        return booking

    async def _fetch_one(self, *conditions: Any) -> BookingResponse | None:
        try:
            result = await self.db.execute(select(consultations).where(and_(*conditions)))
        except SQLAlchemyError as e:
            logger.error("booking_read_failed", error=str(e))
            raise PersistenceException("Failed to load booking") from e
        row = result.fetchone()
        return BookingResponse.model_validate(dict(row._mapping)) if row else None

    async def get_by_payment_reference(self, payment_reference: str) -> BookingResponse | None:
        """Look up a booking by its payment reference."""
        return await self._fetch_one(consultations.c.payment_reference == payment_reference)

    async def get_by_order_tracking_id(self, order_tracking_id: str) -> BookingResponse | None:
        """Look up a booking by the processor's order tracking id."""
        return await self._fetch_one(consultations.c.order_tracking_id == order_tracking_id)

    async def get_booking(self, booking_id: UUID, patient_id: UUID) -> BookingResponse:
        """
        Get a booking owned by ``patient_id``.

        Raises:
            NotFoundException: If the booking does not exist
            ForbiddenException: If it belongs to someone else
        """
        booking = await self._fetch_one(consultations.c.id == booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        if booking.patient_id != patient_id:
            raise ForbiddenException("Access denied to this booking")
        return booking

    async def _require(self, payment_reference: str) -> BookingResponse:
        booking = await self.get_by_payment_reference(payment_reference)
        if booking is None:
            logger.warning("booking_not_found", reference=payment_reference)
            raise NotFoundException("Booking not found for this payment")
        return booking

    async def _update(self, *conditions: Any, **values: Any) -> BookingResponse | None:
        """Conditional update; returns None when no row matched."""
        values["updated_at"] = utcnow()
        stmt = (
            update(consultations)
            .where(and_(*conditions))
            .values(**values)
            .returning(consultations)
        )
        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("booking_update_failed", error=str(e))
            raise PersistenceException("Failed to update booking") from e
        return BookingResponse.model_validate(dict(row._mapping)) if row else None

    async def _live_replacement(self, booking: BookingResponse) -> BookingResponse:
        """Follow ``superseded_by`` links to the attempt that currently holds the slot."""
        seen = {booking.id}
        while booking.superseded_by is not None:
            replacement = await self._fetch_one(consultations.c.id == booking.superseded_by)
            if replacement is None or replacement.id in seen:
                break
            seen.add(replacement.id)
            booking = replacement
        return booking

    async def promote_to_scheduled(
        self,
        payment_reference: str,
        payment_method: str | None = None,
    ) -> BookingResponse:
        """
        Confirm a paid booking.

        Idempotent: a booking that is already scheduled is returned as is.
        The update only applies while the row is still ``pending_payment``,
        so concurrent reconciliations cannot both change it.

        A payment for an attempt that was superseded by a resumed payment is
        applied to the replacement booking, which then records the settled
        reference.

        Raises:
            NotFoundException: If no booking carries the reference
            ConflictException: If the booking was cancelled or completed
        """
        booking = await self._require(payment_reference)
        if booking.superseded_by is not None:
            booking = await self._live_replacement(booking)
            logger.info(
                "payment_follows_replacement",
                reference=payment_reference,
                booking_id=str(booking.id),
            )

        if booking.status == BookingStatus.SCHEDULED:
            if booking.settled_reference and booking.settled_reference != payment_reference:
                logger.warning(
                    "duplicate_payment_settled",
                    booking_id=str(booking.id),
                    settled_reference=booking.settled_reference,
                    reference=payment_reference,
                )
            return booking
        if not can_transition(booking.status, BookingStatus.SCHEDULED):
            logger.warning(
                "promotion_refused",
                reference=payment_reference,
                status=booking.status.value,
            )
            raise ConflictException(f"Booking is {booking.status.value} and cannot be scheduled")

        values: dict[str, Any] = {
            "status": BookingStatus.SCHEDULED.value,
            "payment_status": COMPLETED_STATUS,
            "settled_reference": payment_reference,
        }
        if payment_method:
            values["payment_method"] = payment_method

        promoted = await self._update(
            consultations.c.id == booking.id,
            consultations.c.status == BookingStatus.PENDING_PAYMENT.value,
            **values,
        )
        if promoted is None:
            # Lost the race against another reconciliation; report what it wrote
            current = await self._fetch_one(consultations.c.id == booking.id)
            if current is not None and current.status == BookingStatus.SCHEDULED:
                return current
            status = current.status.value if current else "missing"
            raise ConflictException(f"Booking is {status} and cannot be scheduled")

        logger.info(
            "booking_promoted",
            booking_id=str(promoted.id),
            reference=payment_reference,
        )
        return promoted

    async def record_payment_status(
        self,
        payment_reference: str,
        gateway_status: str,
        payment_method: str | None = None,
    ) -> BookingResponse:
        """
        Mirror the processor's latest status onto the booking.

        ``COMPLETED`` promotes the booking; other statuses only update the
        mirrored field and never touch a booking that is already scheduled.
        """
        if gateway_status == COMPLETED_STATUS:
            return await self.promote_to_scheduled(payment_reference, payment_method)

        booking = await self._require(payment_reference)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            return booking
        if booking.payment_status == gateway_status:
            return booking

        updated = await self._update(
            consultations.c.payment_reference == payment_reference,
            consultations.c.status == BookingStatus.PENDING_PAYMENT.value,
            payment_status=gateway_status,
        )
        logger.info(
            "payment_status_recorded",
            reference=payment_reference,
            payment_status=gateway_status,
        )
        return updated or await self._require(payment_reference)

    async def supersede_booking(
        self,
        booking: BookingResponse,
        payment_reference: str,
        order_tracking_id: str,
        amount: float,
    ) -> BookingResponse:
        """
        Replace a pending booking with a fresh attempt for the same slot.

        The old row is cancelled and the new one inserted in one transaction,
        so the slot is never free in between and each row keeps the payment
        reference it was created with.
        """
        now = utcnow()
        new_id = uuid4()
        try:
            result = await self.db.execute(
                update(consultations)
                .where(
                    and_(
                        consultations.c.id == booking.id,
                        consultations.c.status == BookingStatus.PENDING_PAYMENT.value,
                    )
                )
                .values(
                    status=BookingStatus.CANCELLED.value,
                    cancelled_at=now,
                    updated_at=now,
                    superseded_by=new_id,
                )
            )
            if result.rowcount == 0:
                await self.db.rollback()
                raise ConflictException("Booking is no longer awaiting payment")

            replacement = await self._insert_provisional(
                {
                    "id": new_id,
                    "patient_id": booking.patient_id,
                    "specialist_id": booking.specialist_id,
                    "scheduled_at": booking.scheduled_at,
                    "status": BookingStatus.PENDING_PAYMENT.value,
                    "payment_reference": payment_reference,
                    "order_tracking_id": order_tracking_id,
                    "payment_amount": amount,
                    "notes": booking.notes,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _is_slot_conflict(e):
                raise SlotUnavailableException() from e
            logger.error("booking_supersede_rejected", booking_id=str(booking.id), error=str(e))
            raise PersistenceException() from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("booking_supersede_failed", booking_id=str(booking.id), error=str(e))
            raise PersistenceException() from e

        logger.info(
            "booking_superseded",
            booking_id=str(booking.id),
            replacement_id=str(replacement.id),
            reference=payment_reference,
        )
        return replacement

    async def find_abandoned_bookings(self, older_than: datetime) -> list[BookingResponse]:
        """Provisional bookings created before ``older_than``, oldest first."""
        try:
            result = await self.db.execute(
                select(consultations)
                .where(
                    and_(
                        consultations.c.status == BookingStatus.PENDING_PAYMENT.value,
                        consultations.c.created_at < ensure_utc(older_than),
                    )
                )
                .order_by(consultations.c.created_at.asc())
            )
        except SQLAlchemyError as e:
            logger.error("abandoned_booking_scan_failed", error=str(e))
            raise PersistenceException("Failed to load bookings") from e
        return [BookingResponse.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def expire_booking(self, payment_reference: str) -> bool:
        """
        Cancel a provisional booking that was never paid.

        Returns:
            False when the booking is no longer ``pending_payment``
        """
        now = utcnow()
        expired = await self._update(
            consultations.c.payment_reference == payment_reference,
            consultations.c.status == BookingStatus.PENDING_PAYMENT.value,
            status=BookingStatus.CANCELLED.value,
            cancelled_at=now,
            payment_status="EXPIRED",
        )
        if expired is not None:
            logger.info("booking_expired", booking_id=str(expired.id), reference=payment_reference)
        return expired is not None
