"""Client for the hosted identity provider (GoTrue-compatible REST API)."""

from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from medtech.config import settings
from medtech.core.exceptions import IdentityProviderException
from medtech.schemas.auth import AuthUser, Session

logger = structlog.get_logger()


def _parse_user(data: dict[str, Any]) -> AuthUser:
    return AuthUser(
        id=str(data["id"]),
        email=data.get("email"),
        email_confirmed=bool(data.get("email_confirmed_at") or data.get("confirmed_at")),
        user_metadata=data.get("user_metadata") or {},
    )


def _parse_session(data: dict[str, Any]) -> Session:
    return Session(
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
        token_type=data.get("token_type", "bearer"),
        expires_in=data.get("expires_in"),
        user=_parse_user(data["user"]),
    )


class IdentityProvider:
    """
    Thin async wrapper over the provider's auth endpoints.

    One instance is created per application and closed at shutdown.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP client."""
        self.base_url = (base_url or settings.auth_url).rstrip("/")
        self.api_key = api_key or settings.auth_anon_key
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/auth/v1",
            headers={
                "apikey": self.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=settings.auth_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else None
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("identity_provider_unreachable", path=path, error=str(e))
            raise IdentityProviderException(
                "Authentication service is unavailable", status_code=503
            ) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = (
                body.get("msg")
                or body.get("error_description")
                or body.get("message")
                or "Authentication request failed"
            )
            logger.warning(
                "identity_provider_error",
                path=path,
                status_code=response.status_code,
                message=message,
            )
            status_code = 401 if response.status_code in (401, 403) else 400
            raise IdentityProviderException(message, status_code=status_code)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def sign_up(
        self,
        email: str,
        password: str,
        user_metadata: dict[str, Any],
    ) -> tuple[AuthUser, Session | None]:
        """
        Register a new user.

        Returns:
            The created user and, when email confirmation is disabled, a session
        """
        data = await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": user_metadata},
        )
        if "access_token" in data:
            session = _parse_session(data)
            return session.user, session
        return _parse_user(data.get("user") or data), None

    async def sign_in(self, email: str, password: str) -> Session:
        """Sign in with email and password."""
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return _parse_session(data)

    async def refresh_session(self, refresh_token: str) -> Session:
        """Exchange a refresh token for a new session."""
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return _parse_session(data)

    def sign_in_with_google(self, redirect_to: str | None = None) -> str:
        """URL the app opens to start the Google OAuth flow."""
        query = urlencode(
            {
                "provider": "google",
                "redirect_to": redirect_to or settings.auth_redirect_url,
            }
        )
        return f"{self.base_url}/auth/v1/authorize?{query}"

    async def reset_password(self, email: str, redirect_to: str | None = None) -> None:
        """Send a password reset email."""
        await self._request(
            "POST",
            "/recover",
            params={"redirect_to": redirect_to or settings.password_reset_redirect_url},
            json={"email": email},
        )

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind ``access_token``."""
        await self._request("POST", "/logout", access_token=access_token)

    async def get_user(self, access_token: str) -> AuthUser:
        """Fetch the user the access token belongs to."""
        data = await self._request("GET", "/user", access_token=access_token)
        return _parse_user(data)
