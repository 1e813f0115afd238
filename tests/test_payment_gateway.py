"""Tests for the Pesapal gateway adapter."""

import pytest

from medtech.schemas.payments import (
    PaymentDetails,
    PaymentFailure,
    PaymentInitResult,
    PaymentStatusResult,
)


@pytest.fixture
def details() -> PaymentDetails:
    """Order for a consultation."""
    return PaymentDetails(
        amount=2500,
        description="Consultation with Dr. Amina Otieno",
        reference="MEDTECH-1-abcd",
        email="test@example.com",
        first_name="Test",
        last_name="User",
        phone="+254712345678",
    )


@pytest.mark.asyncio
async def test_initialize_payment(gateway, pesapal, details) -> None:
    """A successful order returns the checkout URL and tracking id."""
    result = await gateway.initialize_payment(details)

    assert isinstance(result, PaymentInitResult)
    assert result.order_tracking_id == "order-1"
    assert "OrderTrackingId=order-1" in result.redirect_url
    assert pesapal.calls == ["token", "order"]

    order = pesapal.orders[0]
    assert order["id"] == "MEDTECH-1-abcd"
    assert order["currency"] == "KES"
    assert order["amount"] == 2500
    assert order["billing_address"]["email_address"] == "test@example.com"
    assert order["billing_address"]["first_name"] == "Test"


@pytest.mark.asyncio
async def test_missing_token_skips_order(gateway, pesapal, details) -> None:
    """Without a bearer token the order request is never sent."""
    pesapal.token = None

    result = await gateway.initialize_payment(details)

    assert isinstance(result, PaymentFailure)
    assert result.error == "Failed to get authorization token"
    assert pesapal.count("order") == 0


@pytest.mark.asyncio
async def test_order_without_redirect_fails(gateway, pesapal, details) -> None:
    """An order response missing the redirect URL is a failure."""
    pesapal.order_response = {"order_tracking_id": "order-x", "status": "500"}

    result = await gateway.initialize_payment(details)

    assert isinstance(result, PaymentFailure)
    assert result.error == "Failed to create payment order"


@pytest.mark.asyncio
async def test_network_error_is_failure(gateway, pesapal, details) -> None:
    """Transport errors come back as failures, not exceptions."""
    pesapal.raise_on = {"token"}

    result = await gateway.initialize_payment(details)
    assert isinstance(result, PaymentFailure)

    status = await gateway.check_payment_status("order-1")
    assert isinstance(status, PaymentFailure)


@pytest.mark.asyncio
async def test_status_is_normalised(gateway, pesapal) -> None:
    """The processor's mixed-case status is upper-cased."""
    pesapal.statuses = ["Completed"]

    result = await gateway.check_payment_status("order-1")

    assert isinstance(result, PaymentStatusResult)
    assert result.status == "COMPLETED"
    assert result.is_completed
    assert result.payment_method == "MpesaKE"


@pytest.mark.asyncio
async def test_status_check_authenticates_each_time(gateway, pesapal) -> None:
    """Every status check acquires its own token."""
    pesapal.statuses = ["PENDING", "COMPLETED"]

    first = await gateway.check_payment_status("order-1")
    second = await gateway.check_payment_status("order-1")

    assert first.status == "PENDING"
    assert not first.is_completed
    assert second.status == "COMPLETED"
    assert pesapal.count("token") == 2


@pytest.mark.asyncio
async def test_status_http_error(gateway, pesapal) -> None:
    """An error response from the status endpoint is a failure."""
    pesapal.status_code = 500

    result = await gateway.check_payment_status("order-1")

    assert isinstance(result, PaymentFailure)
    assert result.error == "Payment status check failed"


@pytest.mark.asyncio
async def test_malformed_status_amount_is_failure(gateway, pesapal) -> None:
    """A non-numeric amount in the status response is a failure, not an exception."""
    pesapal.statuses = ["COMPLETED"]
    pesapal.amount = {"value": 2000, "currency": "KES"}

    result = await gateway.check_payment_status("order-1")

    assert isinstance(result, PaymentFailure)

    pesapal.amount = [2000]
    result = await gateway.check_payment_status("order-1")

    assert isinstance(result, PaymentFailure)
