"""Pesapal payment processor adapter."""

from typing import Any

import httpx
import structlog

from medtech.config import settings
from medtech.schemas.payments import (
    PaymentDetails,
    PaymentFailure,
    PaymentInitResult,
    PaymentStatusResult,
)

logger = structlog.get_logger()

TOKEN_ERROR = "Failed to get authorization token"
ORDER_ERROR = "Failed to create payment order"


class PesapalGateway:
    """
    Brokers the processor's REST calls behind tagged results.

    The gateway holds no booking state. Every public call acquires a fresh
    bearer token, and every failure (network, auth, malformed response)
    comes back as a ``PaymentFailure`` instead of an exception. Nothing is
    retried here; callers decide what to do next.
    """

    TOKEN_PATH = "/api/Auth/RequestToken"
    ORDER_PATH = "/api/Transactions/SubmitOrderRequest"
    STATUS_PATH = "/api/Transactions/GetTransactionStatus"

    def __init__(
        self,
        base_url: str | None = None,
        consumer_key: str | None = None,
        consumer_secret: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP client."""
        self.consumer_key = consumer_key or settings.pesapal_consumer_key
        self.consumer_secret = consumer_secret or settings.pesapal_consumer_secret
        self.client = httpx.AsyncClient(
            base_url=(base_url or settings.pesapal_api_url).rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=settings.pesapal_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def _request_token(self) -> str | None:
        """Client-credential exchange; returns None when no token is issued."""
        response = await self.client.post(
            self.TOKEN_PATH,
            json={
                "consumer_key": self.consumer_key,
                "consumer_secret": self.consumer_secret,
            },
        )
        data = self._json(response)
        token = data.get("token")
        if not token:
            logger.warning(
                "pesapal_token_missing",
                status_code=response.status_code,
                error=data.get("error"),
            )
            return None
        return token

    async def initialize_payment(
        self,
        details: PaymentDetails,
    ) -> PaymentInitResult | PaymentFailure:
        """
        Submit an order and obtain the hosted checkout URL.

        Args:
            details: Amount, description, merchant reference and payer

        Returns:
            Redirect URL and order tracking id, or the failure reason
        """
        try:
            token = await self._request_token()
            if token is None:
                return PaymentFailure(error=TOKEN_ERROR)

            response = await self.client.post(
                self.ORDER_PATH,
                headers={"Authorization": f"Bearer {token}"},
                json={
                    "id": details.reference,
                    "currency": settings.pesapal_currency,
                    "amount": details.amount,
                    "description": details.description,
                    "callback_url": settings.pesapal_callback_url,
                    "notification_id": settings.pesapal_notification_id,
                    "billing_address": {
                        "email_address": details.email,
                        "phone_number": details.phone or "",
                        "first_name": details.first_name,
                        "last_name": details.last_name,
                    },
                },
            )
            data = self._json(response)

            redirect_url = data.get("redirect_url")
            order_tracking_id = data.get("order_tracking_id")
            if not redirect_url or not order_tracking_id:
                logger.warning(
                    "pesapal_order_rejected",
                    reference=details.reference,
                    status_code=response.status_code,
                    error=data.get("error"),
                )
                return PaymentFailure(error=ORDER_ERROR)

            logger.info(
                "pesapal_order_submitted",
                reference=details.reference,
                order_tracking_id=order_tracking_id,
            )
            return PaymentInitResult(
                redirect_url=redirect_url,
                order_tracking_id=order_tracking_id,
            )
        except (httpx.HTTPError, TypeError, ValueError) as e:
            logger.error("payment_init_error", reference=details.reference, error=str(e))
            return PaymentFailure(error=str(e) or "Payment initialization failed")

    async def check_payment_status(
        self,
        order_tracking_id: str,
    ) -> PaymentStatusResult | PaymentFailure:
        """
        Query the processor for an order's current status.

        The status is normalised to upper case; newer API versions report it
        in ``payment_status_description`` ("Completed") rather than ``status``.
        """
        try:
            token = await self._request_token()
            if token is None:
                return PaymentFailure(error=TOKEN_ERROR)

            response = await self.client.get(
                self.STATUS_PATH,
                params={"orderTrackingId": order_tracking_id},
                headers={"Authorization": f"Bearer {token}"},
            )
            data = self._json(response)
            if response.status_code >= 400:
                logger.warning(
                    "pesapal_status_rejected",
                    order_tracking_id=order_tracking_id,
                    status_code=response.status_code,
                    error=data.get("error"),
                )
                return PaymentFailure(error="Payment status check failed")

            raw_status = data.get("payment_status_description") or data.get("status") or "UNKNOWN"
            amount = data.get("amount")

            return PaymentStatusResult(
                status=str(raw_status).strip().upper(),
                payment_method=data.get("payment_method"),
                amount=float(amount) if amount is not None else None,
            )
        except (httpx.HTTPError, TypeError, ValueError) as e:
            logger.error(
                "payment_status_error",
                order_tracking_id=order_tracking_id,
                error=str(e),
            )
            return PaymentFailure(error=str(e) or "Payment status check failed")
