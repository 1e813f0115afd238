"""Profile and account verification service."""

from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.core.exceptions import NotFoundException
from medtech.core.timeutils import utcnow
from medtech.models.profiles import profiles
from medtech.models.verification_requests import verification_requests
from medtech.schemas.profiles import (
    ProfileResponse,
    ProfileUpdate,
    VerificationRequestCreate,
    VerificationRequestResponse,
)

logger = structlog.get_logger()


class ProfileService:
    """Service for patient profiles."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_profile(self, user_id: UUID) -> dict | None:
        """Get a profile row by user ID."""
        result = await self.db.execute(select(profiles).where(profiles.c.id == user_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def create_profile(self, user_id: UUID, **values: Any) -> dict:
        """Create the profile row for a newly registered user."""
        now = utcnow()
        stmt = (
            profiles.insert()
            .values(id=user_id, created_at=now, updated_at=now, **values)
            .returning(profiles)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        await self.db.commit()
        logger.info("profile_created", user_id=str(user_id))
        return dict(row)

    async def update_profile(self, user_id: UUID, data: ProfileUpdate) -> ProfileResponse:
        """
        Update the caller's profile.

        Raises:
            NotFoundException: If the profile does not exist
        """
        update_values = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not update_values:
            profile = await self.get_profile(user_id)
            if profile is None:
                raise NotFoundException("Profile not found")
            return ProfileResponse.model_validate(profile)

        update_values["updated_at"] = utcnow()
        stmt = (
            update(profiles)
            .where(profiles.c.id == user_id)
            .values(**update_values)
            .returning(profiles)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if row is None:
            await self.db.rollback()
            raise NotFoundException("Profile not found")
        await self.db.commit()
        return ProfileResponse.model_validate(dict(row))

    async def submit_verification(
        self,
        user_id: UUID,
        email: str | None,
        data: VerificationRequestCreate,
    ) -> VerificationRequestResponse:
        """
        Store an account verification request.

        Creates the profile when the sign-up step did not, and flags it as
        having submitted verification either way.
        """
        now = utcnow()
        profile = await self.get_profile(user_id)

        if profile is None:
            await self.db.execute(
                profiles.insert().values(
                    id=user_id,
                    email=email,
                    full_name=data.full_name,
                    date_of_birth=data.date_of_birth,
                    phone=data.phone,
                    user_type="patient",
                    is_verified=False,
                    verification_submitted=True,
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            await self.db.execute(
                update(profiles)
                .where(profiles.c.id == user_id)
                .values(
                    full_name=data.full_name,
                    date_of_birth=data.date_of_birth,
                    verification_submitted=True,
                    updated_at=now,
                )
            )

        stmt = (
            verification_requests.insert()
            .values(
                id=uuid4(),
                user_id=user_id,
                email=data.email or email,
                status="pending",
                created_at=now,
                **data.model_dump(exclude={"email"}),
            )
            .returning(verification_requests)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        await self.db.commit()

        logger.info("verification_submitted", user_id=str(user_id))
        return VerificationRequestResponse.model_validate(dict(row))
