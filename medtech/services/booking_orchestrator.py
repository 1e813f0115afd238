"""Booking orchestration: slot selection, checkout and payment reconciliation."""

import secrets
import time
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.config import settings
from medtech.core.exceptions import (
    ConflictException,
    NotFoundException,
    PaymentInitException,
    SlotUnavailableException,
    ValidationException,
)
from medtech.core.timeutils import slot_start, utcnow
from medtech.schemas.bookings import (
    BookingFlowState,
    BookingOutcome,
    BookingResponse,
    BookingStatus,
    BrowserResult,
    CheckoutRequest,
    CheckoutResponse,
)
from medtech.schemas.payments import PaymentDetails, PaymentFailure, PaymentInitResult
from medtech.schemas.specialists import SpecialistResponse
from medtech.services.availability_service import AvailabilityService
from medtech.services.payment_gateway import PesapalGateway
from medtech.services.reservation_service import ReservationService
from medtech.services.specialist_service import SpecialistService

logger = structlog.get_logger()

# Reasons attached to still-pending outcomes
PAYMENT_DEFERRED = "payment_deferred"
PAYMENT_INCOMPLETE = "payment_incomplete"
PAYMENT_STATUS_UNKNOWN = "payment_status_unknown"
BOOKING_INACTIVE = "booking_inactive"

SCHEDULED_MESSAGE = "Your consultation has been scheduled successfully!"
DEFERRED_MESSAGE = (
    "Your consultation booking is saved but requires payment. "
    "You can complete payment later in your consultations tab."
)
UNKNOWN_MESSAGE = (
    "We could not confirm your payment yet. "
    "Your booking is saved and you can retry payment from your consultations tab."
)


class CheckoutBrowser(Protocol):
    """Hosted browsing context that shows the processor's checkout page."""

    async def open(self, url: str) -> BrowserResult:
        """Open ``url`` and return once the context has been closed."""
        ...


class BookingFlow:
    """Guarded state of a single checkout attempt."""

    TRANSITIONS: dict[BookingFlowState, frozenset[BookingFlowState]] = {
        BookingFlowState.SELECTING_SLOT: frozenset({BookingFlowState.AWAITING_PAYMENT}),
        BookingFlowState.AWAITING_PAYMENT: frozenset(
            {BookingFlowState.RECONCILING, BookingFlowState.SELECTING_SLOT}
        ),
        BookingFlowState.RECONCILING: frozenset(
            {BookingFlowState.SCHEDULED, BookingFlowState.STILL_PENDING}
        ),
        BookingFlowState.SCHEDULED: frozenset(),
        # A pending booking can be paid again later
        BookingFlowState.STILL_PENDING: frozenset({BookingFlowState.AWAITING_PAYMENT}),
    }

    def __init__(self, state: BookingFlowState = BookingFlowState.SELECTING_SLOT):
        """Start the flow in ``state``."""
        self.state = state

    def advance(self, target: BookingFlowState) -> None:
        """
        Move to ``target``.

        Raises:
            ConflictException: If the move is not allowed from the current state
        """
        if target not in self.TRANSITIONS[self.state]:
            raise ConflictException(
                f"Cannot move booking flow from {self.state.value} to {target.value}"
            )
        logger.debug("booking_flow_transition", source=self.state.value, target=target.value)
        self.state = target


def new_payment_reference() -> str:
    """
    Generate a payment reference unique across booking attempts.

    A nanosecond timestamp plus a random suffix keeps attempts started in
    the same instant apart.
    """
    return f"{settings.payment_reference_prefix}-{time.time_ns()}-{secrets.token_hex(4)}"


def split_name(full_name: str | None) -> tuple[str, str]:
    """Split a display name into the processor's first/last name fields."""
    parts = (full_name or "").split()
    if not parts:
        return "Patient", ""
    return parts[0], " ".join(parts[1:])


class BookingOrchestrator:
    """
    Drives a booking from slot selection to a reconciled payment.

    Outcomes are returned, not raised: a payment that cannot be confirmed
    leaves the booking ``pending_payment`` and yields a ``still_pending``
    outcome. Only failures that abort the attempt (invalid selection,
    slot taken, processor refused the order, store failure) are raised.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: PesapalGateway,
        time_slots: list[str] | None = None,
    ):
        """Initialize orchestrator with database session and payment gateway."""
        self.gateway = gateway
        self.reservations = ReservationService(db)
        self.specialists = SpecialistService(db)
        self.time_slots = list(time_slots or settings.time_slots)
        self.availability = AvailabilityService(db, self.time_slots)

    async def _load_specialist(self, specialist_id: UUID) -> SpecialistResponse:
        specialist = await self.specialists.get_specialist(specialist_id)
        if not specialist.is_available:
            raise ValidationException("This specialist is not accepting bookings")
        return specialist

    @staticmethod
    def _payment_details(
        patient: dict[str, Any],
        specialist: SpecialistResponse,
        reference: str,
    ) -> PaymentDetails:
        first_name, last_name = split_name(patient.get("full_name"))
        try:
            return PaymentDetails(
                amount=specialist.consultation_fee,
                description=f"Consultation with {specialist.full_name}"[:100],
                reference=reference,
                email=patient.get("email") or "",
                first_name=first_name,
                last_name=last_name,
                phone=patient.get("phone"),
            )
        except ValidationError as e:
            fields = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
            logger.warning(
                "payment_details_invalid",
                reference=reference,
                fields=sorted(fields),
                error=str(e),
            )
            if fields == {"email"}:
                raise ValidationException(
                    "A valid email address is required to pay for a consultation"
                ) from e
            raise ValidationException(
                f"Invalid payment details: {', '.join(sorted(fields)) or 'order'}"
            ) from e

    async def _initialize(
        self,
        flow: BookingFlow,
        details: PaymentDetails,
    ) -> PaymentInitResult:
        """Entry action of ``awaiting_payment``: create the processor order."""
        flow.advance(BookingFlowState.AWAITING_PAYMENT)
        result = await self.gateway.initialize_payment(details)
        if isinstance(result, PaymentFailure):
            flow.advance(BookingFlowState.SELECTING_SLOT)
            logger.warning("payment_init_failed", reference=details.reference, error=result.error)
            raise PaymentInitException(result.error)
        return result

    async def start_checkout(
        self,
        patient: dict[str, Any],
        request: CheckoutRequest,
        flow: BookingFlow | None = None,
    ) -> CheckoutResponse:
        """
        Leave slot selection: open a processor order and reserve the slot.

        Args:
            patient: Current user (``id``, ``email``, ``full_name``, ``phone``)
            request: Selected specialist, day and time
            flow: Flow to advance, a fresh one by default

        Returns:
            The provisional booking and the checkout URL to open

        Raises:
            ValidationException: If no valid, future time slot was selected
            PaymentInitException: If the processor did not create the order
            SlotUnavailableException: If the slot was reserved meanwhile
            PersistenceException: If the booking could not be stored
        """
        flow = flow or BookingFlow()

        if not request.time:
            raise ValidationException("Please select a time slot")
        if request.time not in self.time_slots:
            raise ValidationException(f"{request.time} is not a bookable time slot")
        if request.day.weekday() >= 5:
            raise ValidationException("Consultations are not available on weekends")

        scheduled_at = slot_start(request.day, request.time)
        if scheduled_at <= utcnow():
            raise ValidationException("This time slot has already passed")

        specialist = await self._load_specialist(request.specialist_id)

        slots = await self.availability.compute_available_slots(specialist.id, request.day)
        if not any(slot.time == request.time and slot.available for slot in slots):
            raise SlotUnavailableException()

        reference = new_payment_reference()
        details = self._payment_details(patient, specialist, reference)

        payment = await self._initialize(flow, details)

        try:
            booking = await self.reservations.create_provisional_booking(
                patient_id=patient["id"],
                specialist_id=specialist.id,
                scheduled_at=scheduled_at,
                payment_reference=reference,
                amount=specialist.consultation_fee,
                order_tracking_id=payment.order_tracking_id,
                notes=request.notes,
            )
        except Exception:
            # The processor order is left unpaid; nothing points at it
            flow.advance(BookingFlowState.SELECTING_SLOT)
            raise

        return CheckoutResponse(
            state=flow.state,
            booking=booking,
            payment_reference=reference,
            order_tracking_id=payment.order_tracking_id,
            redirect_url=payment.redirect_url,
        )

    async def complete_checkout(
        self,
        booking: BookingResponse,
        browser_result: BrowserResult,
        flow: BookingFlow | None = None,
    ) -> BookingOutcome:
        """
        Reconcile once the hosted checkout has closed.

        A checkout cancelled before any redirect defers payment without
        asking the processor; otherwise the order status is checked once.
        """
        flow = flow or BookingFlow(BookingFlowState.AWAITING_PAYMENT)
        flow.advance(BookingFlowState.RECONCILING)

        if browser_result == BrowserResult.CANCEL:
            flow.advance(BookingFlowState.STILL_PENDING)
            logger.info("payment_deferred", booking_id=str(booking.id))
            return BookingOutcome(
                state=flow.state,
                booking=booking,
                reason=PAYMENT_DEFERRED,
                message=DEFERRED_MESSAGE,
                payment_status=booking.payment_status,
            )

        return await self._reconcile(flow, booking)

    async def book(
        self,
        patient: dict[str, Any],
        request: CheckoutRequest,
        browser: CheckoutBrowser,
    ) -> BookingOutcome:
        """
        Run a full booking attempt.

        Suspends on ``browser.open`` until the hosted checkout closes.
        """
        flow = BookingFlow()
        checkout = await self.start_checkout(patient, request, flow)
        result = await browser.open(checkout.redirect_url)
        return await self.complete_checkout(checkout.booking, result, flow)

    async def reconcile_callback(
        self,
        order_tracking_id: str,
        merchant_reference: str | None = None,
    ) -> BookingOutcome:
        """
        Reconcile from the processor's redirect back into the app.

        Safe to run alongside or after the browser-close path.

        Raises:
            NotFoundException: If no booking matches the order
        """
        booking = await self.reservations.get_by_order_tracking_id(order_tracking_id)
        if booking is None and merchant_reference:
            booking = await self.reservations.get_by_payment_reference(merchant_reference)
        if booking is None:
            logger.warning(
                "callback_booking_not_found",
                order_tracking_id=order_tracking_id,
                merchant_reference=merchant_reference,
            )
            raise NotFoundException("Consultation not found for this payment")

        return await self._reconcile(BookingFlow(BookingFlowState.RECONCILING), booking)

    async def _reconcile(self, flow: BookingFlow, booking: BookingResponse) -> BookingOutcome:
        """Entry action of ``reconciling``: one status check, mapped onto the booking."""
        if booking.status == BookingStatus.SCHEDULED:
            flow.advance(BookingFlowState.SCHEDULED)
            return BookingOutcome(
                state=flow.state,
                booking=booking,
                message=SCHEDULED_MESSAGE,
                payment_status=booking.payment_status,
            )

        if not booking.order_tracking_id:
            flow.advance(BookingFlowState.STILL_PENDING)
            return BookingOutcome(
                state=flow.state,
                booking=booking,
                reason=PAYMENT_STATUS_UNKNOWN,
                message=UNKNOWN_MESSAGE,
            )

        status = await self.gateway.check_payment_status(booking.order_tracking_id)
        if isinstance(status, PaymentFailure):
            flow.advance(BookingFlowState.STILL_PENDING)
            logger.warning(
                "payment_status_unknown",
                booking_id=str(booking.id),
                order_tracking_id=booking.order_tracking_id,
                error=status.error,
            )
            return BookingOutcome(
                state=flow.state,
                booking=booking,
                reason=PAYMENT_STATUS_UNKNOWN,
                message=UNKNOWN_MESSAGE,
            )

        try:
            updated = await self.reservations.record_payment_status(
                booking.payment_reference,
                status.status,
                status.payment_method,
            )
        except ConflictException as e:
            flow.advance(BookingFlowState.STILL_PENDING)
            log = logger.error if status.is_completed else logger.warning
            log(
                "payment_for_inactive_booking",
                booking_id=str(booking.id),
                booking_status=booking.status.value,
                payment_status=status.status,
            )
            return BookingOutcome(
                state=flow.state,
                booking=booking,
                reason=BOOKING_INACTIVE,
                message=e.message,
                payment_status=status.status,
            )

        if updated.status == BookingStatus.SCHEDULED:
            flow.advance(BookingFlowState.SCHEDULED)
            return BookingOutcome(
                state=flow.state,
                booking=updated,
                message=SCHEDULED_MESSAGE,
                payment_status=status.status,
            )

        flow.advance(BookingFlowState.STILL_PENDING)
        return BookingOutcome(
            state=flow.state,
            booking=updated,
            reason=PAYMENT_INCOMPLETE,
            message=f"Payment is not complete. Status: {status.status}",
            payment_status=status.status,
        )

    async def resume_payment(
        self,
        patient: dict[str, Any],
        booking_id: UUID,
    ) -> CheckoutResponse:
        """
        Start a new payment attempt for a booking left ``pending_payment``.

        The earlier order is checked first, in case it settled but the app
        never heard back. Otherwise a new order is created and the pending
        booking is superseded by one carrying the new payment reference.

        Raises:
            ConflictException: If the booking is not awaiting payment
            ValidationException: If the consultation time has passed
            PaymentInitException: If the processor did not create the order
        """
        booking = await self.reservations.get_booking(booking_id, patient["id"])
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise ConflictException("Only bookings awaiting payment can be resumed")
        if booking.scheduled_at <= utcnow():
            raise ValidationException("This consultation time has passed. Please book a new slot.")

        if booking.order_tracking_id:
            previous = await self._reconcile(BookingFlow(BookingFlowState.RECONCILING), booking)
            if previous.state == BookingFlowState.SCHEDULED:
                logger.info("resume_found_settled_payment", booking_id=str(booking.id))
                return CheckoutResponse(
                    state=previous.state,
                    booking=previous.booking,
                    payment_reference=previous.booking.payment_reference,
                    order_tracking_id=previous.booking.order_tracking_id,
                )

        flow = BookingFlow(BookingFlowState.STILL_PENDING)
        specialist = await self.specialists.get_specialist(booking.specialist_id)
        reference = new_payment_reference()
        details = self._payment_details(patient, specialist, reference)

        payment = await self._initialize(flow, details)

        replacement = await self.reservations.supersede_booking(
            booking,
            payment_reference=reference,
            order_tracking_id=payment.order_tracking_id,
            amount=specialist.consultation_fee,
        )

        return CheckoutResponse(
            state=flow.state,
            booking=replacement,
            payment_reference=reference,
            order_tracking_id=payment.order_tracking_id,
            redirect_url=payment.redirect_url,
        )

    async def expire_abandoned_bookings(self, older_than: datetime) -> int:
        """
        Cancel provisional bookings created before ``older_than`` that were never paid.

        A booking with a processor order is only cancelled once the processor
        reports the order unpaid. A settled order promotes the booking instead,
        and a booking whose order status cannot be read is kept for the next run.

        Returns:
            Number of bookings cancelled
        """
        expired = 0
        for booking in await self.reservations.find_abandoned_bookings(older_than):
            if booking.order_tracking_id:
                status = await self.gateway.check_payment_status(booking.order_tracking_id)
                if isinstance(status, PaymentFailure):
                    logger.warning(
                        "expiry_skipped_status_unknown",
                        booking_id=str(booking.id),
                        order_tracking_id=booking.order_tracking_id,
                        error=status.error,
                    )
                    continue
                updated = await self.reservations.record_payment_status(
                    booking.payment_reference,
                    status.status,
                    status.payment_method,
                )
                if updated.status != BookingStatus.PENDING_PAYMENT:
                    logger.info(
                        "expiry_found_settled_payment",
                        booking_id=str(updated.id),
                        status=updated.status.value,
                    )
                    continue
            if await self.reservations.expire_booking(booking.payment_reference):
                expired += 1

        logger.info("abandoned_bookings_expired", count=expired, older_than=older_than.isoformat())
        return expired
