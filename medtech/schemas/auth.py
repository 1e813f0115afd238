"""Authentication schemas."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class SignUpRequest(BaseModel):
    """Sign-up form."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=200)
    date_of_birth: date
    agreed_to_terms: bool


class SignInRequest(BaseModel):
    """Email and password sign-in."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class PasswordResetRequest(BaseModel):
    """Password reset request."""

    email: EmailStr


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class AuthUser(BaseModel):
    """User as reported by the identity provider."""

    id: str
    email: str | None = None
    email_confirmed: bool = False
    user_metadata: dict = Field(default_factory=dict)


class Session(BaseModel):
    """Session issued by the identity provider."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    user: AuthUser


class SignUpResponse(BaseModel):
    """Result of a sign-up; ``session`` is empty until the email is confirmed."""

    user: AuthUser
    session: Session | None = None


class OAuthRedirect(BaseModel):
    """URL the app opens to continue a social sign-in."""

    provider: str
    url: str


class NavigationRoute(str, Enum):
    """Top-level area the app should show."""

    SIGN_IN = "sign_in"
    VERIFICATION = "verification"
    MAIN = "main"


class SessionState(BaseModel):
    """Authentication state driving top-level navigation."""

    authenticated: bool
    verified: bool
    route: NavigationRoute
    user_id: str | None = None
