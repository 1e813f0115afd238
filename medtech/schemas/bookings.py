"""Booking schemas and lifecycle vocabulary."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from medtech.core.timeutils import ensure_utc


class BookingStatus(str, Enum):
    """Persisted booking status."""

    PENDING_PAYMENT = "pending_payment"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING_PAYMENT, BookingStatus.SCHEDULED)

# Payment confirmation is the only forward move driven by the app;
# completion happens when the date elapses, cancellation is terminal.
BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING_PAYMENT: frozenset({BookingStatus.SCHEDULED, BookingStatus.CANCELLED}),
    BookingStatus.SCHEDULED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Whether a booking may move from ``current`` to ``target``."""
    return target in BOOKING_TRANSITIONS[current]


class BookingFlowState(str, Enum):
    """States of a single checkout attempt."""

    SELECTING_SLOT = "selecting_slot"
    AWAITING_PAYMENT = "awaiting_payment"
    RECONCILING = "reconciling"
    SCHEDULED = "scheduled"
    STILL_PENDING = "still_pending"


class BookingBucket(str, Enum):
    """Consultation list tabs."""

    UPCOMING = "upcoming"
    COMPLETED = "completed"


class BrowserResult(str, Enum):
    """How the hosted checkout page was closed."""

    # Dismissed by the user before the processor redirected anywhere
    CANCEL = "cancel"
    # Closed by the user after the checkout page loaded
    DISMISS = "dismiss"
    # Closed automatically after the processor's redirect
    OPENED = "opened"


class BookingResponse(BaseModel):
    """Schema for booking response."""

    id: UUID
    patient_id: UUID
    specialist_id: UUID
    scheduled_at: datetime
    status: BookingStatus
    payment_reference: str
    order_tracking_id: str | None = None
    payment_amount: float
    payment_status: str | None = None
    payment_method: str | None = None
    settled_reference: str | None = None
    notes: str | None = None
    superseded_by: UUID | None = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("scheduled_at", "created_at", "updated_at", "cancelled_at")
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        """Stores without timezone support hand back naive UTC values."""
        return ensure_utc(v) if v is not None else None


class ConsultationItem(BookingResponse):
    """Booking joined with the specialist's display fields."""

    specialist_name: str | None = None
    specialist_specialty: str | None = None
    specialist_image_url: str | None = None
    payment_required: bool = False


class ConsultationListResponse(BaseModel):
    """Schema for a consultation list tab."""

    bucket: BookingBucket
    total: int
    items: list[ConsultationItem]


class CheckoutRequest(BaseModel):
    """Slot selection submitted when the patient taps "Book"."""

    specialist_id: UUID
    day: date
    time: str | None = Field(None, description="Selected slot start, HH:MM")
    notes: str | None = Field(None, max_length=1000)


class CheckoutResponse(BaseModel):
    """
    A provisional booking waiting for the hosted checkout to close.

    When resuming a booking whose earlier payment turns out to have
    settled, ``state`` is ``scheduled`` and there is nothing to open.
    """

    state: BookingFlowState
    booking: BookingResponse
    payment_reference: str
    order_tracking_id: str | None = None
    redirect_url: str | None = None


class ReconcileRequest(BaseModel):
    """Reported by the app once the hosted checkout has closed."""

    browser_result: BrowserResult


class BookingOutcome(BaseModel):
    """Terminal result of a checkout attempt or reconciliation."""

    state: BookingFlowState
    booking: BookingResponse | None = None
    reason: str | None = None
    message: str
    payment_status: str | None = None


class PaymentCallbackResponse(BaseModel):
    """Outcome shown on the processor's unauthenticated redirect page."""

    state: BookingFlowState
    booking_id: UUID | None = None
    reason: str | None = None
    message: str

    @classmethod
    def from_outcome(cls, outcome: BookingOutcome) -> "PaymentCallbackResponse":
        return cls(
            state=outcome.state,
            booking_id=outcome.booking.id if outcome.booking else None,
            reason=outcome.reason,
            message=outcome.message,
        )
