"""OAuth credentials and token refresh for the Home Connect API.

The ``CredentialStore`` is the single owner of the bearer and refresh
token. It is created once at startup and shared by reference between
the adapter (which reads the access token for every request) and the
``OAuthGateway`` (which replaces the tokens after a refresh).
"""

from typing import Optional
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel, ValidationError

from shared.config import HomeConnectSettings
from shared.errors import ConfigurationError, NoRefreshToken, RefreshFailed
from shared.logging import get_logger
from shared.models import TokenPair

logger = get_logger(__name__)


class CredentialStore:
    """Process-wide holder of the current OAuth token pair."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None
    ) -> None:
        self._tokens = TokenPair(access_token=access_token, refresh_token=refresh_token)

    @property
    def access_token(self) -> Optional[str]:
        return self._tokens.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._tokens.refresh_token

    def replace(self, tokens: TokenPair) -> None:
        """
        Swap in a new token pair.

        The refresh token is only replaced when ``tokens`` carries one;
        providers may omit it from a refresh response.
        """
        self._tokens = TokenPair(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token or self._tokens.refresh_token
        )

    def __repr__(self) -> str:
        return (
            f"CredentialStore(access_token={'set' if self.access_token else None}, "
            f"refresh_token={'set' if self.refresh_token else None})"
        )


class _TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None


def build_authorization_url(settings: HomeConnectSettings) -> str:
    """
    Build the URL a user visits to grant this client access.

    Raises:
        ConfigurationError: If no client id is configured
    """
    if not settings.client_id:
        raise ConfigurationError("Home Connect client ID is not configured")

    query = urlencode(
        {
            "client_id": settings.client_id,
            "response_type": "code",
            "redirect_uri": settings.redirect_uri,
        },
        quote_via=quote
    )
    return f"{settings.oauth_base_url}/authorize?{query}"


class OAuthGateway:
    """
    Client for the Home Connect OAuth token endpoint.

    Only the refresh grant is implemented; obtaining the first token pair
    happens outside this process.
    """

    def __init__(
        self,
        settings: HomeConnectSettings,
        credentials: CredentialStore,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def token_url(self) -> str:
        return f"{self.settings.oauth_base_url}/token"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.settings.timeout_seconds,
                transport=self._transport
            )
        return self._client

    async def refresh(self) -> str:
        """
        Exchange the held refresh token for a new access token.

        Returns:
            The new access token

        Raises:
            NoRefreshToken: If no refresh token is held
            RefreshFailed: On any transport or provider error
        """
        refresh_token = self.credentials.refresh_token
        if not refresh_token:
            raise NoRefreshToken()

        logger.info("Refreshing access token")
        client = await self._get_client()
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.settings.client_id or "",
            "client_secret": self.settings.client_secret or "",
        }

        try:
            response = await client.post(self.token_url, data=form)
            response.raise_for_status()
            tokens = _TokenResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.warning("Token refresh rejected", status_code=e.response.status_code)
            raise RefreshFailed(f"token endpoint returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("Token refresh request failed", error=str(e))
            raise RefreshFailed(str(e) or type(e).__name__) from e
        except (ValidationError, ValueError) as e:
            logger.warning("Malformed token response", error=str(e))
            raise RefreshFailed("malformed token response") from e

        self.credentials.replace(
            TokenPair(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
        )
        logger.info("Access token refreshed", refresh_token_rotated=tokens.refresh_token is not None)
        return tokens.access_token

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
