"""
Bearer-token acquisition for the Microsoft back-ends.

Either a pre-acquired token from configuration, or the OAuth2
client-credentials grant against the Microsoft identity platform with the
token cached until shortly before it expires.
"""

import asyncio
import logging
import time
from typing import Optional, Protocol

import httpx

from ..errors import ConfigurationError
from ..models import OAuthConfig

logger = logging.getLogger(__name__)

TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"

# Refresh this many seconds before the reported expiry.
EXPIRY_MARGIN_SECONDS = 60


class TokenProvider(Protocol):
    async def get_token(self) -> str: ...


class StaticTokenProvider:
    """Hands out one fixed bearer token."""

    def __init__(self, token: str):
        self._token = token

    async def get_token(self) -> str:
        return self._token


class ClientCredentialsTokenProvider:
    """OAuth2 client-credentials grant with an in-memory token cache."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        scope: str,
    ):
        self._http = http_client
        self._token_url = TOKEN_URL_TEMPLATE.format(tenant_id=tenant_id)
        self._client_id = client_id
        self._client_secret = client_secret
        self.scope = scope
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            if self._token and time.monotonic() < self._expires_at:
                return self._token

            logger.debug(f"Requesting access token for scope {self.scope}")
            response = await self._http.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": self.scope,
                },
            )
            response.raise_for_status()
            payload = response.json()

            self._token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 3600))
            self._expires_at = time.monotonic() + max(expires_in - EXPIRY_MARGIN_SECONDS, 0)
            return self._token


def create_token_provider(
    auth: OAuthConfig, http_client: httpx.AsyncClient, scope: str, backend: str
) -> TokenProvider:
    """Pick the token provider the credentials in ``auth`` allow."""
    if auth.access_token:
        return StaticTokenProvider(auth.access_token)
    if auth.is_configured:
        return ClientCredentialsTokenProvider(
            http_client,
            tenant_id=auth.tenant_id,
            client_id=auth.client_id,
            client_secret=auth.client_secret,
            scope=scope,
        )
    raise ConfigurationError(
        f"{backend} credentials not configured: set access_token or "
        "tenant_id, client_id and client_secret"
    )
