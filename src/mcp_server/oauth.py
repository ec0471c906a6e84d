"""OAuth2 provider token endpoints.

Each provider exchanges a refresh token for a new access token using the
standard ``refresh_token`` grant.
"""

from typing import Any, Optional

import httpx
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.config import Settings
from shared.logging import get_logger

logger = get_logger(__name__)


class TokenGrant(BaseModel):
    """Tokens issued by a provider's refresh grant."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class TokenRefreshError(Exception):
    """The provider did not issue a new access token."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class OAuthProvider:
    """
    Refresh-token client for one OAuth2 provider.

    Transport failures are retried with backoff; an HTTP rejection from
    the token endpoint is final.
    """

    def __init__(
        self,
        name: str,
        token_url: str,
        client_id: Optional[str],
        client_secret: Optional[str],
        http: httpx.AsyncClient
    ) -> None:
        self.name = name
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self._http = http

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.

        Args:
            refresh_token: The stored refresh token

        Returns:
            The issued tokens

        Raises:
            TokenRefreshError: If the provider rejects the grant or is unreachable
        """
        if not self.configured:
            raise TokenRefreshError(f"OAuth client for '{self.name}' is not configured")

        try:
            response = await self._post_token({
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            })
        except httpx.TransportError as e:
            raise TokenRefreshError(f"Token endpoint unreachable: {e}") from e

        if response.status_code >= 400:
            raise TokenRefreshError(
                _describe_error(response),
                status_code=response.status_code
            )

        payload = response.json()
        if not payload.get("access_token"):
            raise TokenRefreshError("Failed to get new access token during refresh.")

        logger.info("Access token refreshed", provider=self.name)
        return TokenGrant(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=payload.get("expires_in"),
        )

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True
    )
    async def _post_token(self, data: dict[str, Any]) -> httpx.Response:
        return await self._http.post(
            self.token_url,
            data=data,
            headers={"Accept": "application/json"}
        )


def _describe_error(response: httpx.Response) -> str:
    """Best-effort message from an OAuth error response."""
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        error = payload.get("error")
        description = payload.get("error_description")
        if error and description:
            return f"{error}: {description}"
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


def build_providers(settings: Settings, http: httpx.AsyncClient) -> dict[str, OAuthProvider]:
    """Create the OAuth providers the tools reference by name."""
    return {
        "google": OAuthProvider(
            name="google",
            token_url=settings.google.token_url,
            client_id=settings.google.client_id,
            client_secret=settings.google.client_secret,
            http=http,
        ),
        "uber": OAuthProvider(
            name="uber",
            token_url=settings.uber.token_url,
            client_id=settings.uber.client_id,
            client_secret=settings.uber.client_secret,
            http=http,
        ),
    }
