"""Profile schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def _validate_phone(v: str | None) -> str | None:
    if v is None:
        return v
    cleaned = (
        v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
    )
    if not cleaned.isdigit():
        raise ValueError("Phone number must contain only digits and separators")
    if len(cleaned) < 7:
        raise ValueError("Phone number must have at least 7 digits")
    return v


class ProfileResponse(BaseModel):
    """Schema for profile response."""

    id: UUID
    email: str | None = None
    full_name: str | None = None
    date_of_birth: date | None = None
    phone: str | None = None
    user_type: str
    is_verified: bool
    verification_submitted: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Schema for updating the caller's profile."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    date_of_birth: date | None = None
    phone: str | None = Field(None, min_length=7, max_length=20)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        return _validate_phone(v)


class VerificationRequestCreate(BaseModel):
    """Account verification form."""

    full_name: str = Field(..., min_length=1, max_length=200)
    date_of_birth: date
    gender: str | None = Field(None, max_length=50)
    email: str | None = Field(None, max_length=320)
    address: str | None = Field(None, max_length=500)
    phone: str | None = Field(None, min_length=7, max_length=20)
    preferred_date: date | None = None
    preferred_time: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    time_zone: str | None = Field(None, max_length=64)
    allergies: str | None = Field(None, max_length=1000)
    health_issue: str | None = Field(None, max_length=2000)
    herbal_history: str | None = Field(None, max_length=2000)
    privacy_agreement: bool

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Validate phone number format."""
        return _validate_phone(v)

    @field_validator("privacy_agreement")
    @classmethod
    def require_agreement(cls, v: bool) -> bool:
        """The privacy agreement must be accepted."""
        if not v:
            raise ValueError("You must accept the privacy agreement")
        return v


class VerificationRequestResponse(BaseModel):
    """Schema for a stored verification request."""

    id: UUID
    user_id: UUID
    full_name: str
    date_of_birth: date
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
