import json
import os
from collections.abc import AsyncGenerator, Callable
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time; provide values for anything .env leaves out
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_URL", "https://auth.medtech.test")
os.environ.setdefault("AUTH_ANON_KEY", "test-anon-key")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
os.environ.setdefault("PESAPAL_CONSUMER_KEY", "test-consumer-key")
os.environ.setdefault("PESAPAL_CONSUMER_SECRET", "test-consumer-secret")

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from medtech.core.identity import IdentityProvider
from medtech.core.security import create_access_token
from medtech.core.timeutils import clinic_today, utcnow
from medtech.database import get_db
from medtech.dependencies import get_identity_provider, get_payment_gateway
from medtech.main import app
from medtech.models import consultations, metadata, profiles, specialists
from medtech.services.payment_gateway import PesapalGateway

# Tests always run against a private in-memory database, never DATABASE_URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePesapal:
    """
    In-process stand-in for the Pesapal v3 API.

    Tests script the responses by setting attributes; every request is
    recorded in ``calls`` by endpoint name.
    """

    def __init__(self) -> None:
        self.token: str | None = "pesapal-token"
        self.order_response: dict[str, Any] | None = None
        self.order_status_code = 200
        # Statuses returned by successive status checks; the last one repeats
        self.statuses: list[str] = ["PENDING"]
        self.status_code = 200
        self.payment_method = "MpesaKE"
        self.amount: Any = 2000
        self.raise_on: set[str] = set()
        self.calls: list[str] = []
        self.orders: list[dict[str, Any]] = []
        self._counter = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/api/Auth/RequestToken"):
            return self._respond("token", request)
        if path.endswith("/api/Transactions/SubmitOrderRequest"):
            return self._respond("order", request)
        if path.endswith("/api/Transactions/GetTransactionStatus"):
            return self._respond("status", request)
        return httpx.Response(404, json={"error": "not found"})

    def _respond(self, name: str, request: httpx.Request) -> httpx.Response:
        self.calls.append(name)
        if name in self.raise_on:
            raise httpx.ConnectError("connection refused", request=request)

        if name == "token":
            if self.token is None:
                return httpx.Response(
                    401, json={"error": {"code": "invalid_consumer_key_or_secret_provided"}}
                )
            return httpx.Response(200, json={"token": self.token, "status": "200"})

        if name == "order":
            order = json.loads(request.content)
            self.orders.append(order)
            if self.order_response is not None:
                return httpx.Response(self.order_status_code, json=self.order_response)
            self._counter += 1
            tracking_id = f"order-{self._counter}"
            return httpx.Response(
                200,
                json={
                    "order_tracking_id": tracking_id,
                    "merchant_reference": order["id"],
                    "redirect_url": f"https://pay.pesapal.test/iframe?OrderTrackingId={tracking_id}",
                    "status": "200",
                },
            )

        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return httpx.Response(
            self.status_code,
            json={
                "payment_status_description": status,
                "payment_method": self.payment_method,
                "amount": self.amount,
                "status": "200",
            },
        )

    def count(self, name: str) -> int:
        return self.calls.count(name)


class FakeIdentity:
    """In-process stand-in for the hosted auth API."""

    def __init__(self) -> None:
        self.user_id = str(uuid4())
        self.confirm_email = False
        self.reject_with: tuple[int, dict[str, Any]] | None = None
        self.requests: list[httpx.Request] = []

    def _session(self, email: str) -> dict[str, Any]:
        return {
            "access_token": create_access_token({"sub": self.user_id, "email": email}),
            "refresh_token": "refresh-token",
            "token_type": "bearer",
            "expires_in": 3600,
            "user": self._user(email),
        }

    def _user(self, email: str) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "email": email,
            "email_confirmed_at": "2024-06-01T00:00:00Z" if self.confirm_email else None,
            "user_metadata": {},
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.reject_with is not None:
            status_code, body = self.reject_with
            return httpx.Response(status_code, json=body)

        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        if path.endswith("/signup"):
            if self.confirm_email:
                return httpx.Response(200, json=self._session(body["email"]))
            return httpx.Response(200, json=self._user(body["email"]))
        if path.endswith("/token"):
            return httpx.Response(200, json=self._session(body.get("email", "test@example.com")))
        if path.endswith("/logout"):
            return httpx.Response(204)
        if path.endswith("/recover"):
            return httpx.Response(200, json={})
        return httpx.Response(404, json={"msg": "not found"})


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh database."""
    # One shared connection keeps the in-memory database alive for the test
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,  # Set to True for SQL debugging
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await test_engine.dispose()


@pytest.fixture
def pesapal() -> FakePesapal:
    """Scriptable payment processor."""
    return FakePesapal()


@pytest_asyncio.fixture
async def gateway(pesapal: FakePesapal) -> AsyncGenerator[PesapalGateway, None]:
    """Payment gateway wired to the fake processor."""
    client = PesapalGateway(
        base_url="https://pesapal.test/v3",
        consumer_key="key",
        consumer_secret="secret",
        transport=httpx.MockTransport(pesapal.handler),
    )
    yield client
    await client.aclose()


@pytest.fixture
def identity_api() -> FakeIdentity:
    """Scriptable identity provider."""
    return FakeIdentity()


@pytest_asyncio.fixture
async def identity(identity_api: FakeIdentity) -> AsyncGenerator[IdentityProvider, None]:
    """Identity provider client wired to the fake auth API."""
    client = IdentityProvider(
        base_url="https://auth.medtech.test",
        api_key="anon",
        transport=httpx.MockTransport(identity_api.handler),
    )
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    gateway: PesapalGateway,
    identity: IdentityProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_identity_provider] = lambda: identity

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> dict:
    """Create a verified patient profile."""
    user_id = uuid4()
    user_data = {
        "id": user_id,
        "email": "test@example.com",
        "full_name": "Test User",
        "phone": "+254712345678",
        "user_type": "patient",
        "agreed_to_terms": True,
        "is_verified": True,
        "verification_submitted": True,
    }

    await db_session.execute(insert(profiles).values(**user_data))
    await db_session.commit()

    return {
        "id": user_id,
        "email": user_data["email"],
        "full_name": user_data["full_name"],
        "phone": user_data["phone"],
        "is_verified": True,
    }


@pytest.fixture
def auth_headers(test_user: dict) -> dict:
    """Create authentication headers for testing protected endpoints."""
    token_data = {
        "sub": str(test_user["id"]),
        "email": test_user["email"],
    }
    token = create_access_token(data=token_data, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_specialist(db_session: AsyncSession) -> dict:
    """Create an available specialist with a set fee."""
    specialist_data = {
        "id": uuid4(),
        "full_name": "Dr. Amina Otieno",
        "specialty": "Dermatology",
        "bio": "Board-certified dermatologist",
        "years_experience": 12,
        "rating": 4.8,
        "consultation_fee": 2500,
        "is_available": True,
    }
    await db_session.execute(insert(specialists).values(**specialist_data))
    await db_session.commit()
    return specialist_data


@pytest.fixture
def booking_day() -> date:
    """First weekday after today on the clinic calendar."""
    day = clinic_today() + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


@pytest.fixture
def insert_booking(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory inserting a booking row directly."""

    async def _insert(
        patient_id: UUID,
        specialist_id: UUID,
        scheduled_at: datetime,
        status: str = "scheduled",
        payment_reference: str | None = None,
        order_tracking_id: str | None = None,
        created_at: datetime | None = None,
        superseded_by: UUID | None = None,
    ) -> UUID:
        booking_id = uuid4()
        now = created_at or utcnow()
        await db_session.execute(
            insert(consultations).values(
                id=booking_id,
                patient_id=patient_id,
                specialist_id=specialist_id,
                scheduled_at=scheduled_at,
                status=status,
                payment_reference=payment_reference or f"REF-{booking_id.hex}",
                order_tracking_id=order_tracking_id,
                payment_amount=2500,
                superseded_by=superseded_by,
                created_at=now,
                updated_at=now,
            )
        )
        await db_session.commit()
        return booking_id

    return _insert

