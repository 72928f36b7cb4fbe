"""
Tests for the Google OAuth client against a stubbed token endpoint.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from agentauth.core.exceptions import ExchangeFailedError, RefreshFailedError
from agentauth.environments.base import SupportedService, get_provider_client
from agentauth.environments.google.auth.client import GoogleAuthClient


@pytest.fixture
def auth_client(settings, google) -> GoogleAuthClient:
    return GoogleAuthClient(settings, transport=google.transport)


class TestAuthorizationUrl:

    def test_url_parameters(self, auth_client: GoogleAuthClient):
        url = auth_client.build_authorization_url(
            client_id="cid",
            redirect_uri="https://broker.test/api/oauth/callback",
            scopes=["https://www.googleapis.com/auth/gmail.send", "https://mail.google.com/"],
            state="abc123",
        )

        parts = urlsplit(url)
        params = {k: v[0] for k, v in parse_qs(parts.query).items()}

        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://accounts.google.com/o/oauth2/v2/auth"
        assert params == {
            "client_id": "cid",
            "redirect_uri": "https://broker.test/api/oauth/callback",
            "response_type": "code",
            "scope": "https://www.googleapis.com/auth/gmail.send https://mail.google.com/",
            "state": "abc123",
            "access_type": "offline",
            "prompt": "consent",
        }


class TestExchangeCode:

    @pytest.mark.asyncio
    async def test_success(self, auth_client: GoogleAuthClient, google):
        google.queue_token("A1", "R1", 3600, "https://www.googleapis.com/auth/gmail.send")

        grant = await auth_client.exchange_code("code-1", "cid", "secret", "https://cb.test")

        assert grant.access_token == "A1"
        assert grant.refresh_token == "R1"
        assert grant.expires_in == 3600
        assert grant.scope == "https://www.googleapis.com/auth/gmail.send"
        assert google.token_requests == [{
            "code": "code-1",
            "client_id": "cid",
            "client_secret": "secret",
            "redirect_uri": "https://cb.test",
            "grant_type": "authorization_code",
        }]

    @pytest.mark.asyncio
    async def test_missing_refresh_token_is_reported_as_none(self, auth_client, google):
        google.queue_token(refresh_token=None)

        grant = await auth_client.exchange_code("code", "cid", "secret", "https://cb.test")

        assert grant.refresh_token is None

    @pytest.mark.asyncio
    async def test_missing_expires_in_defaults_to_an_hour(self, auth_client, google):
        google.queue_token(expires_in=None)

        grant = await auth_client.exchange_code("code", "cid", "secret", "https://cb.test")

        assert grant.expires_in == 3600

    @pytest.mark.asyncio
    async def test_rejection(self, auth_client, google):
        google.queue_error(400, "invalid_grant", "Bad Request")

        with pytest.raises(ExchangeFailedError) as exc_info:
            await auth_client.exchange_code("bad", "cid", "secret", "https://cb.test")

        assert exc_info.value.code == "token_exchange_failed"
        assert exc_info.value.provider_message == "invalid_grant: Bad Request"

    @pytest.mark.asyncio
    async def test_timeout(self, auth_client, google):
        google.queue_exception(httpx.ReadTimeout("timed out"))

        with pytest.raises(ExchangeFailedError) as exc_info:
            await auth_client.exchange_code("code", "cid", "secret", "https://cb.test")

        assert exc_info.value.provider_message == "timeout"

    @pytest.mark.asyncio
    async def test_network_error(self, auth_client, google):
        google.queue_exception(httpx.ConnectError("connection refused"))

        with pytest.raises(ExchangeFailedError):
            await auth_client.exchange_code("code", "cid", "secret", "https://cb.test")

    @pytest.mark.asyncio
    async def test_unreadable_body(self, auth_client, google):
        google.queue_response(httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(ExchangeFailedError):
            await auth_client.exchange_code("code", "cid", "secret", "https://cb.test")


class TestRefresh:

    @pytest.mark.asyncio
    async def test_success_without_rotation(self, auth_client, google):
        google.queue_token("A2", refresh_token=None, expires_in=3599)

        refreshed = await auth_client.refresh("R1", "cid", "secret")

        assert refreshed.access_token == "A2"
        assert refreshed.expires_in == 3599
        assert refreshed.refresh_token is None
        assert google.token_requests[0]["grant_type"] == "refresh_token"
        assert google.token_requests[0]["refresh_token"] == "R1"

    @pytest.mark.asyncio
    async def test_rotation(self, auth_client, google):
        google.queue_token("A2", refresh_token="R2")

        refreshed = await auth_client.refresh("R1", "cid", "secret")

        assert refreshed.refresh_token == "R2"

    @pytest.mark.asyncio
    async def test_revoked_refresh_token(self, auth_client, google):
        google.queue_error(400, "invalid_grant", "Token has been expired or revoked.")

        with pytest.raises(RefreshFailedError) as exc_info:
            await auth_client.refresh("R1", "cid", "secret")

        assert exc_info.value.code == "refresh_failed"


class TestRevoke:

    @pytest.mark.asyncio
    async def test_revoke_success(self, auth_client, google):
        assert await auth_client.revoke_token("R1") is True
        assert google.revoke_requests[0].url.params["token"] == "R1"

    @pytest.mark.asyncio
    async def test_revoke_rejected(self, auth_client, google):
        google.revoke_status = 400
        assert await auth_client.revoke_token("R1") is False


class TestProviderFactory:

    def test_google_client(self, settings):
        assert isinstance(get_provider_client(SupportedService.GOOGLE, settings), GoogleAuthClient)
