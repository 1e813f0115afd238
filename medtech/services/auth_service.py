"""Authentication service backed by the hosted identity provider."""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.core.exceptions import ValidationException
from medtech.core.identity import IdentityProvider
from medtech.schemas.auth import (
    NavigationRoute,
    Session,
    SessionState,
    SignUpRequest,
    SignUpResponse,
)
from medtech.services.profile_service import ProfileService

logger = structlog.get_logger()


def resolve_navigation(user_id: str | None, profile: dict | None) -> SessionState:
    """
    Decide which top-level area the app shows.

    No session goes to sign-in, a session without a verified profile goes
    to the verification form, and a verified patient gets the main tabs.
    """
    if user_id is None:
        return SessionState(authenticated=False, verified=False, route=NavigationRoute.SIGN_IN)

    verified = bool(profile and profile.get("is_verified"))
    return SessionState(
        authenticated=True,
        verified=verified,
        route=NavigationRoute.MAIN if verified else NavigationRoute.VERIFICATION,
        user_id=user_id,
    )


class AuthService:
    """Sign-up, sign-in and session handling."""

    def __init__(self, identity: IdentityProvider, db: AsyncSession):
        """Initialize auth service with identity provider and database session."""
        self.identity = identity
        self.profiles = ProfileService(db)

    async def sign_up(self, data: SignUpRequest) -> SignUpResponse:
        """
        Register a patient and create their profile.

        Raises:
            ValidationException: If the terms were not accepted
        """
        if not data.agreed_to_terms:
            raise ValidationException("You must agree to the terms and conditions")

        user, session = await self.identity.sign_up(
            data.email,
            data.password,
            {
                "full_name": data.full_name,
                "date_of_birth": data.date_of_birth.isoformat(),
                "user_type": "patient",
                "agreed_to_terms": data.agreed_to_terms,
                "is_verified": False,
            },
        )

        user_id = UUID(user.id)
        if await self.profiles.get_profile(user_id) is None:
            await self.profiles.create_profile(
                user_id,
                email=data.email,
                full_name=data.full_name,
                date_of_birth=data.date_of_birth,
                user_type="patient",
                agreed_to_terms=True,
                is_verified=False,
            )

        logger.info("user_signed_up", user_id=user.id, confirmed=session is not None)
        return SignUpResponse(user=user, session=session)

    async def sign_in(self, email: str, password: str) -> Session:
        """Sign in with email and password."""
        session = await self.identity.sign_in(email, password)
        logger.info("user_signed_in", user_id=session.user.id)
        return session

    async def refresh(self, refresh_token: str) -> Session:
        """Refresh an expiring session."""
        return await self.identity.refresh_session(refresh_token)

    async def sign_out(self, access_token: str, user_id: str) -> None:
        """End the session behind ``access_token``."""
        await self.identity.sign_out(access_token)
        logger.info("user_signed_out", user_id=user_id)

    async def session_state(self, user_id: UUID | None) -> SessionState:
        """Navigation state for the caller."""
        profile = await self.profiles.get_profile(user_id) if user_id else None
        return resolve_navigation(str(user_id) if user_id else None, profile)

