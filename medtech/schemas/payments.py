"""Payment processor request and result schemas."""

from typing import Literal

from pydantic import BaseModel, EmailStr, Field

COMPLETED_STATUS = "COMPLETED"


class PaymentDetails(BaseModel):
    """Order details sent to the payment processor."""

    amount: float = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=100)
    reference: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    first_name: str
    last_name: str = ""
    phone: str | None = None


class PaymentInitResult(BaseModel):
    """Checkout created; the patient must be sent to ``redirect_url``."""

    success: Literal[True] = True
    redirect_url: str
    order_tracking_id: str


class PaymentStatusResult(BaseModel):
    """Last status reported by the processor for an order."""

    success: Literal[True] = True
    status: str
    payment_method: str | None = None
    amount: float | None = None

    @property
    def is_completed(self) -> bool:
        """Only ``COMPLETED`` counts as settled; anything else is still open."""
        return self.status == COMPLETED_STATUS


class PaymentFailure(BaseModel):
    """Any failure talking to the processor."""

    success: Literal[False] = False
    error: str
