"""Liveness and readiness endpoints for the booking API."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from medtech.config import settings
from medtech.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness of the booking API process."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Readiness to take bookings: the store and the payment processor settings."""

    database: str
    payments: str
    clinic_timezone: str


def _payments_state() -> str:
    required = (
        settings.pesapal_consumer_key,
        settings.pesapal_consumer_secret,
        settings.pesapal_callback_url,
        settings.pesapal_notification_id,
    )
    return "configured" if all(required) else "unconfigured"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Booking API liveness",
)
async def health_check() -> HealthResponse:
    """Report that the process is up; used by the load balancer."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Booking readiness",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Check what a checkout needs before it can reserve a slot.

    Bookings are written to the database and paid through Pesapal, so the
    service is ``degraded`` when the database is unreachable or the
    processor credentials are missing.

    Returns:
        Database and payment readiness with the clinic timezone in use
    """
    db_healthy = await check_database_connection()
    payments = _payments_state()

    return DetailedHealthResponse(
        status="healthy" if db_healthy and payments == "configured" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        payments=payments,
        clinic_timezone=settings.clinic_timezone,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Ping",
)
async def ping() -> dict[str, str]:
    return {"message": "pong"}
