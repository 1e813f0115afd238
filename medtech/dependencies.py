"""FastAPI dependencies."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from medtech.core.identity import IdentityProvider
from medtech.core.security import decode_access_token
from medtech.database import get_db
from medtech.services.payment_gateway import PesapalGateway
from medtech.services.profile_service import ProfileService

# Security
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def get_identity_provider(request: Request) -> IdentityProvider:
    """Identity provider client owned by the application."""
    return request.app.state.identity_provider


def get_payment_gateway(request: Request) -> PesapalGateway:
    """Payment gateway client owned by the application."""
    return request.app.state.payment_gateway


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _claims(token: str) -> dict[str, Any]:
    payload = decode_access_token(token)
    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        payload["sub"] = UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format")

    return payload


async def get_current_claims(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> dict[str, Any]:
    """
    Validate the bearer token and return its claims.

    Raises:
        HTTPException: If token is invalid or expired
    """
    return _claims(credentials.credentials)


async def get_current_user_id(
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
) -> UUID:
    """User ID from the access token."""
    return claims["sub"]


async def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(optional_security)],
) -> UUID | None:
    """User ID when a valid token is present, None otherwise."""
    if credentials is None:
        return None
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        return None
    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        return None


async def get_current_user(
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Current patient, merged from token claims and profile.

    Users who signed in with Google may not have a profile row yet; their
    name then comes from the provider's metadata.
    """
    metadata = claims.get("user_metadata") or {}
    profile = await ProfileService(db).get_profile(claims["sub"]) or {}

    return {
        "id": claims["sub"],
        "email": profile.get("email") or claims.get("email"),
        "full_name": profile.get("full_name") or metadata.get("full_name"),
        "phone": profile.get("phone"),
        "is_verified": bool(profile.get("is_verified")),
        "has_profile": bool(profile),
    }


async def get_access_token(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """Raw bearer token, after validation."""
    _claims(credentials.credentials)
    return credentials.credentials


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
OptionalUserId = Annotated[UUID | None, Depends(get_optional_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
AccessToken = Annotated[str, Depends(get_access_token)]
Identity = Annotated[IdentityProvider, Depends(get_identity_provider)]
PaymentGateway = Annotated[PesapalGateway, Depends(get_payment_gateway)]
