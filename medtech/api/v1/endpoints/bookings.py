"""Booking endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from medtech.dependencies import CurrentUser, DatabaseSession, PaymentGateway
from medtech.schemas.bookings import (
    BookingFlowState,
    BookingOutcome,
    BookingResponse,
    CheckoutRequest,
    CheckoutResponse,
    ReconcileRequest,
)
from medtech.services.booking_orchestrator import BookingFlow, BookingOrchestrator
from medtech.services.reservation_service import ReservationService

router = APIRouter()


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Bookings"],
    summary="Reserve a slot and open a payment order",
)
async def start_checkout(
    data: CheckoutRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    gateway: PaymentGateway,
) -> CheckoutResponse:
    """
    Reserve the selected slot and create the processor order.

    The app opens ``redirect_url`` in a browser and reports back through
    ``POST /bookings/{id}/reconcile`` once it closes.

    Args:
        data: Selected specialist, day and time
        current_user: Authenticated patient
        db: Database session
        gateway: Payment gateway client

    Returns:
        The provisional booking and checkout URL
    """
    orchestrator = BookingOrchestrator(db, gateway)
    return await orchestrator.start_checkout(current_user, data)


@router.post(
    "/{booking_id}/reconcile",
    response_model=BookingOutcome,
    status_code=status.HTTP_200_OK,
    tags=["Bookings"],
    summary="Reconcile payment after checkout closes",
)
async def reconcile_booking(
    booking_id: UUID,
    data: ReconcileRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    gateway: PaymentGateway,
) -> BookingOutcome:
    """
    Check the payment of a booking once the hosted checkout has closed.

    Returns:
        ``scheduled`` when paid, otherwise ``still_pending`` with a reason
    """
    orchestrator = BookingOrchestrator(db, gateway)
    booking = await orchestrator.reservations.get_booking(booking_id, current_user["id"])
    return await orchestrator.complete_checkout(
        booking,
        data.browser_result,
        BookingFlow(BookingFlowState.AWAITING_PAYMENT),
    )


@router.post(
    "/{booking_id}/resume-payment",
    response_model=CheckoutResponse,
    status_code=status.HTTP_200_OK,
    tags=["Bookings"],
    summary="Pay for a booking awaiting payment",
)
async def resume_payment(
    booking_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    gateway: PaymentGateway,
) -> CheckoutResponse:
    """
    Start a new payment attempt for a pending booking.

    If the earlier payment settled in the meantime the booking is returned
    as ``scheduled`` with no checkout URL.
    """
    orchestrator = BookingOrchestrator(db, gateway)
    return await orchestrator.resume_payment(current_user, booking_id)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
    tags=["Bookings"],
    summary="Get booking by ID",
)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> BookingResponse:
    """Get one of the caller's bookings."""
    service = ReservationService(db)
    return await service.get_booking(booking_id, current_user["id"])
