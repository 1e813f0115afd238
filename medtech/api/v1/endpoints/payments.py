"""Payment processor callback endpoint."""

from fastapi import APIRouter, Query, status

from medtech.core.exceptions import ValidationException
from medtech.dependencies import DatabaseSession, PaymentGateway
from medtech.schemas.bookings import PaymentCallbackResponse
from medtech.services.booking_orchestrator import BookingOrchestrator

router = APIRouter()


@router.get(
    "/payment-callback",
    response_model=PaymentCallbackResponse,
    status_code=status.HTTP_200_OK,
    tags=["Payments"],
    summary="Payment redirect callback",
)
async def payment_callback(
    db: DatabaseSession,
    gateway: PaymentGateway,
    order_tracking_id: str | None = Query(None, alias="OrderTrackingId"),
    merchant_reference: str | None = Query(None, alias="OrderMerchantReference"),
) -> PaymentCallbackResponse:
    """
    Reconcile a booking when the processor redirects back into the app.

    Runs the same status check as the browser-close path and may race it;
    promotion is idempotent so either may win. Only the outcome and the booking id are returned.

    Args:
        db: Database session
        gateway: Payment gateway client
        order_tracking_id: Processor order id
        merchant_reference: Our payment reference

    Returns:
        Reconciliation outcome without the booking details
    """
    if not order_tracking_id:
        raise ValidationException("Payment reference not found")

    orchestrator = BookingOrchestrator(db, gateway)
    outcome = await orchestrator.reconcile_callback(order_tracking_id, merchant_reference)
    return PaymentCallbackResponse.from_outcome(outcome)
