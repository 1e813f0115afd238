"""Authentication endpoints."""

from fastapi import APIRouter, Query, status

from medtech.dependencies import (
    AccessToken,
    CurrentUserId,
    DatabaseSession,
    Identity,
    OptionalUserId,
)
from medtech.schemas.auth import (
    OAuthRedirect,
    PasswordResetRequest,
    Session,
    SessionState,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    TokenRefresh,
)
from medtech.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/sign-up",
    response_model=SignUpResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Authentication"],
    summary="Register a patient",
)
async def sign_up(
    data: SignUpRequest,
    identity: Identity,
    db: DatabaseSession,
) -> SignUpResponse:
    """
    Register a patient account and create their profile.

    Args:
        data: Sign-up form
        identity: Identity provider client
        db: Database session

    Returns:
        The new user and, if email confirmation is off, a session
    """
    return await AuthService(identity, db).sign_up(data)


@router.post(
    "/sign-in",
    response_model=Session,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Sign in with email and password",
)
async def sign_in(
    data: SignInRequest,
    identity: Identity,
    db: DatabaseSession,
) -> Session:
    """Sign in with email and password."""
    return await AuthService(identity, db).sign_in(data.email, data.password)


@router.get(
    "/google",
    response_model=OAuthRedirect,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Start Google sign-in",
)
async def sign_in_with_google(
    identity: Identity,
    redirect_to: str | None = Query(None),
) -> OAuthRedirect:
    """URL the app opens to sign in with Google."""
    return OAuthRedirect(provider="google", url=identity.sign_in_with_google(redirect_to))


@router.post(
    "/reset-password",
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Authentication"],
    summary="Send a password reset email",
)
async def reset_password(data: PasswordResetRequest, identity: Identity) -> dict[str, str]:
    """Send a password reset email."""
    await identity.reset_password(data.email)
    return {"message": "If an account exists for this email, a reset link has been sent"}


@router.post(
    "/refresh",
    response_model=Session,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Refresh session",
)
async def refresh_session(data: TokenRefresh, identity: Identity, db: DatabaseSession) -> Session:
    """Exchange a refresh token for a new session."""
    return await AuthService(identity, db).refresh(data.refresh_token)


@router.post(
    "/sign-out",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Authentication"],
    summary="Sign out",
)
async def sign_out(
    access_token: AccessToken,
    user_id: CurrentUserId,
    identity: Identity,
    db: DatabaseSession,
) -> None:
    """Revoke the current session."""
    await AuthService(identity, db).sign_out(access_token, str(user_id))


@router.get(
    "/session",
    response_model=SessionState,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Current session and navigation state",
)
async def get_session(
    user_id: OptionalUserId,
    identity: Identity,
    db: DatabaseSession,
) -> SessionState:
    """
    Report whether the caller is signed in and verified.

    The app uses ``route`` to pick between sign-in, verification and the
    main tabs.
    """
    return await AuthService(identity, db).session_state(user_id)
