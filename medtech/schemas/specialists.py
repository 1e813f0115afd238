"""Specialist schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class SpecialistResponse(BaseModel):
    """Schema for specialist response."""

    id: UUID
    full_name: str
    specialty: str
    bio: str | None = None
    image_url: str | None = None
    years_experience: int | None = None
    rating: float | None = None
    consultation_fee: float = Field(..., description="Fee in KES, platform default when unset")
    is_available: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SpecialistListResponse(BaseModel):
    """Schema for specialist directory response."""

    total: int
    items: list[SpecialistResponse]
