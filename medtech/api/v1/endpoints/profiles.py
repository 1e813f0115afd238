"""Profile and verification endpoints."""

from fastapi import APIRouter, status

from medtech.core.exceptions import NotFoundException
from medtech.dependencies import CurrentUser, CurrentUserId, DatabaseSession
from medtech.schemas.profiles import (
    ProfileResponse,
    ProfileUpdate,
    VerificationRequestCreate,
    VerificationRequestResponse,
)
from medtech.services.profile_service import ProfileService

router = APIRouter()


@router.get(
    "/profiles/me",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    tags=["Profiles"],
    summary="Get current user profile",
)
async def get_my_profile(user_id: CurrentUserId, db: DatabaseSession) -> ProfileResponse:
    """Get the authenticated user's profile."""
    profile = await ProfileService(db).get_profile(user_id)
    if profile is None:
        raise NotFoundException("Profile not found")
    return ProfileResponse.model_validate(profile)


@router.patch(
    "/profiles/me",
    response_model=ProfileResponse,
    status_code=status.HTTP_200_OK,
    tags=["Profiles"],
    summary="Update current user profile",
)
async def update_my_profile(
    data: ProfileUpdate,
    user_id: CurrentUserId,
    db: DatabaseSession,
) -> ProfileResponse:
    """
    Update the authenticated user's profile.

    Args:
        data: Fields to change
        user_id: Authenticated user ID
        db: Database session

    Returns:
        Updated profile
    """
    return await ProfileService(db).update_profile(user_id, data)


@router.post(
    "/verification",
    response_model=VerificationRequestResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Profiles"],
    summary="Submit account verification",
)
async def submit_verification(
    data: VerificationRequestCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> VerificationRequestResponse:
    """Submit the verification form reviewed before an account is verified."""
    service = ProfileService(db)
    return await service.submit_verification(current_user["id"], current_user["email"], data)
