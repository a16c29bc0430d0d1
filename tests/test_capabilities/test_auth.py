"""
Tests for bearer-token providers.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from function_chat.capabilities.auth import (
    ClientCredentialsTokenProvider,
    StaticTokenProvider,
    create_token_provider,
)
from function_chat.errors import ConfigurationError
from function_chat.models import OAuthConfig


def _token_client(requests, expires_in=3600):
    def handler(request):
        requests.append(request)
        return httpx.Response(
            200, json={"access_token": f"token-{len(requests)}", "expires_in": expires_in}
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestClientCredentialsTokenProvider:
    """Tests for the client-credentials grant."""

    @pytest.mark.asyncio
    async def test_requests_and_caches_token(self):
        """The token is requested once and reused while valid."""
        requests = []
        http = _token_client(requests)
        provider = ClientCredentialsTokenProvider(
            http, tenant_id="tenant", client_id="cid", client_secret="secret", scope="https://org/.default"
        )

        assert await provider.get_token() == "token-1"
        assert await provider.get_token() == "token-1"
        await http.aclose()

        assert len(requests) == 1
        request = requests[0]
        assert str(request.url) == "https://login.microsoftonline.com/tenant/oauth2/v2.0/token"
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["client_id"] == ["cid"]
        assert form["scope"] == ["https://org/.default"]

    @pytest.mark.asyncio
    async def test_refreshes_expired_token(self):
        """A token inside the expiry margin is refreshed."""
        requests = []
        http = _token_client(requests, expires_in=30)
        provider = ClientCredentialsTokenProvider(http, "t", "c", "s", "scope")

        assert await provider.get_token() == "token-1"
        assert await provider.get_token() == "token-2"
        await http.aclose()

    @pytest.mark.asyncio
    async def test_token_endpoint_error(self):
        """Errors from the token endpoint propagate."""
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(401)))
        provider = ClientCredentialsTokenProvider(http, "t", "c", "s", "scope")
        with pytest.raises(httpx.HTTPStatusError):
            await provider.get_token()
        await http.aclose()


class TestCreateTokenProvider:
    """Tests for provider selection from configuration."""

    @pytest.mark.asyncio
    async def test_access_token_wins(self):
        auth = OAuthConfig(access_token="fixed", tenant_id="t", client_id="c", client_secret="s")
        provider = create_token_provider(auth, httpx.AsyncClient(), "scope", "Graph")
        assert isinstance(provider, StaticTokenProvider)
        assert await provider.get_token() == "fixed"

    def test_client_credentials(self):
        auth = OAuthConfig(tenant_id="t", client_id="c", client_secret="s")
        provider = create_token_provider(auth, httpx.AsyncClient(), "scope", "Graph")
        assert isinstance(provider, ClientCredentialsTokenProvider)
        assert provider.scope == "scope"

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError, match="Graph credentials"):
            create_token_provider(OAuthConfig(), httpx.AsyncClient(), "scope", "Graph")
