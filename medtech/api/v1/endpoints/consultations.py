"""Consultation list endpoints."""

from fastapi import APIRouter, Query, status

from medtech.dependencies import CurrentUserId, DatabaseSession
from medtech.schemas.bookings import BookingBucket, ConsultationItem, ConsultationListResponse
from medtech.services.consultation_service import ConsultationService

router = APIRouter()


@router.get(
    "/",
    response_model=ConsultationListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Consultations"],
    summary="List consultations",
)
async def list_consultations(
    user_id: CurrentUserId,
    db: DatabaseSession,
    bucket: BookingBucket = Query(BookingBucket.UPCOMING),
) -> ConsultationListResponse:
    """
    List the caller's consultations for one tab.

    Args:
        user_id: Authenticated user ID
        db: Database session
        bucket: ``upcoming`` or ``completed``

    Returns:
        Consultations with specialist details
    """
    service = ConsultationService(db)
    return await service.list_bookings(user_id, bucket)


@router.get(
    "/next",
    response_model=ConsultationItem | None,
    status_code=status.HTTP_200_OK,
    tags=["Consultations"],
    summary="Next upcoming consultation",
)
async def get_next_consultation(
    user_id: CurrentUserId,
    db: DatabaseSession,
) -> ConsultationItem | None:
    """Next upcoming consultation, or null when there is none."""
    service = ConsultationService(db)
    return await service.next_upcoming(user_id)
