"""Specialist directory and availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from medtech.config import settings
from medtech.dependencies import DatabaseSession
from medtech.schemas.availability import AvailableDaysResponse, AvailableSlotsResponse
from medtech.schemas.specialists import SpecialistListResponse, SpecialistResponse
from medtech.services.availability_service import AvailabilityService
from medtech.services.specialist_service import SpecialistService

router = APIRouter()


@router.get(
    "/",
    response_model=SpecialistListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Specialists"],
    summary="List specialists",
)
async def list_specialists(
    db: DatabaseSession,
    specialty: str | None = Query(None),
    search: str | None = Query(None, min_length=1, max_length=100),
    available_only: bool = Query(True),
) -> SpecialistListResponse:
    """
    List specialists for the directory screen.

    Args:
        db: Database session
        specialty: Filter by specialty
        search: Match on name
        available_only: Hide specialists not taking bookings

    Returns:
        Specialists, best rated first
    """
    service = SpecialistService(db)
    return await service.list_specialists(
        specialty=specialty,
        available_only=available_only,
        search=search,
    )


@router.get(
    "/{specialist_id}",
    response_model=SpecialistResponse,
    status_code=status.HTTP_200_OK,
    tags=["Specialists"],
    summary="Get specialist by ID",
)
async def get_specialist(specialist_id: UUID, db: DatabaseSession) -> SpecialistResponse:
    """Get specialist by ID."""
    service = SpecialistService(db)
    return await service.get_specialist(specialist_id)


@router.get(
    "/{specialist_id}/availability/days",
    response_model=AvailableDaysResponse,
    status_code=status.HTTP_200_OK,
    tags=["Specialists"],
    summary="Bookable days",
)
async def get_available_days(
    specialist_id: UUID,
    db: DatabaseSession,
    window_days: int | None = Query(None, ge=1, le=60),
) -> AvailableDaysResponse:
    """
    Weekdays in the booking window that still have a free slot.

    Args:
        specialist_id: Specialist ID
        db: Database session
        window_days: Days to look ahead, today included

    Returns:
        Candidate days in ascending order
    """
    await SpecialistService(db).get_specialist(specialist_id)

    window = window_days or settings.booking_window_days
    days = await AvailabilityService(db).compute_available_days(specialist_id, window)
    return AvailableDaysResponse(specialist_id=specialist_id, window_days=window, days=days)


@router.get(
    "/{specialist_id}/availability/slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Specialists"],
    summary="Slot grid for a day",
)
async def get_available_slots(
    specialist_id: UUID,
    db: DatabaseSession,
    day: date = Query(..., description="Day in YYYY-MM-DD format"),
) -> AvailableSlotsResponse:
    """Each catalogue slot on ``day``, marked free or taken."""
    await SpecialistService(db).get_specialist(specialist_id)

    slots = await AvailabilityService(db).compute_available_slots(specialist_id, day)
    return AvailableSlotsResponse(specialist_id=specialist_id, day=day, slots=slots)
