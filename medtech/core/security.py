"""Verification of identity-provider access tokens."""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from medtech.config import settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create an access token signed like the identity provider's.

    Used by local tooling and tests; production tokens come from the
    provider itself.

    Args:
        data: Payload data to encode (``sub`` is the user id)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(hours=1))

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "aud": settings.auth_jwt_audience,
            "role": "authenticated",
        }
    )

    return jwt.encode(
        to_encode,
        settings.auth_jwt_secret,
        algorithm=settings.auth_jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate an access token.

    Args:
        token: JWT issued by the identity provider

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
        )
    except JWTError:
        return None

    if payload.get("role") != "authenticated":
        return None

    return payload
