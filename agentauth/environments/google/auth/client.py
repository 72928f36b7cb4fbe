"""
Google OAuth Client - token endpoint calls on behalf of a tenant's OAuth app.

Key Features:
=============
1. Authorization URL generation (always offline access with forced consent,
   so Google issues a refresh token on every grant)
2. Code-to-token exchange
3. Token refresh
4. Token revocation for disconnect

Every network call is a single attempt bounded by PROVIDER_TIMEOUT_SECONDS.
A timeout or transport error is reported exactly like a rejection from Google.

References:
===========
- OAuth 2.0: https://developers.google.com/identity/protocols/oauth2
- Token endpoint: https://oauth2.googleapis.com/token
"""

import logging
from typing import List, Optional, Type
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from agentauth.core.config import Settings
from agentauth.core.exceptions import ExchangeFailedError, ProviderError, RefreshFailedError
from agentauth.environments.base import OAuthProviderClient, RefreshedToken, TokenGrant
from agentauth.environments.google.auth.schemas import GoogleErrorResponse, GoogleTokenResponse


logger = logging.getLogger("agentauth.environments.google.auth")


class GoogleAuthClient(OAuthProviderClient):
    """
    Google OAuth 2.0 client.

    Holds no tenant state: client id and secret arrive with each call.

    Example Usage:
        client = GoogleAuthClient(settings)

        # Step 1: Consent URL
        url = client.build_authorization_url(
            client_id=cred.client_id,
            redirect_uri=settings.GOOGLE_OAUTH_CALLBACK_URL,
            scopes=["https://www.googleapis.com/auth/gmail.send"],
            state=state,
        )

        # Step 2: Callback
        grant = await client.exchange_code(code, cred.client_id, secret, redirect_uri)

        # Step 3: Later, when the access token is about to expire
        refreshed = await client.refresh(refresh_token, cred.client_id, secret)
    """

    provider_name = "google"

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: Supplies the Google endpoint URLs and the timeout
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.authorization_url = settings.GOOGLE_AUTHORIZATION_URL
        self.token_url = settings.GOOGLE_TOKEN_URL
        self.revoke_url = settings.GOOGLE_REVOKE_URL
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    # -------------------------------------------------------------------------
    # AUTHORIZATION URL
    # -------------------------------------------------------------------------

    def build_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: List[str],
        state: str,
    ) -> str:
        """
        Generate the Google consent URL.

        Args:
            client_id: Tenant's Google OAuth client id
            redirect_uri: Broker callback URL (must be registered on the client)
            scopes: Full Google scope strings, in request order
            state: Single-use state token

        Returns:
            Full authorization URL to redirect the end-user to
        """
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "access_type": "offline",  # include refresh_token
            "prompt": "consent",  # Google only re-issues refresh tokens on consent
        }
        return f"{self.authorization_url}?{urlencode(params)}"

    # -------------------------------------------------------------------------
    # TOKEN EXCHANGE
    # -------------------------------------------------------------------------

    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> TokenGrant:
        """
        Exchange an authorization code for access and refresh tokens.

        Args:
            code: Authorization code from the callback
            client_id: Tenant's Google OAuth client id
            client_secret: Tenant's decrypted client secret
            redirect_uri: Must equal the redirect_uri used in the consent URL

        Returns:
            TokenGrant (refresh_token may be None; the caller decides)

        Raises:
            ExchangeFailedError: If Google rejects the code or is unreachable
        """
        data = {
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

        logger.info("Exchanging authorization code for tokens")
        token_response = await self._post_token_request(data, ExchangeFailedError)

        logger.info(
            "Obtained Google tokens",
            extra={
                "has_refresh_token": token_response.refresh_token is not None,
                "expires_in": token_response.expires_in,
            },
        )

        return TokenGrant(
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token,
            expires_in=token_response.get_expires_in(),
            scope=token_response.scope or "",
        )

    # -------------------------------------------------------------------------
    # TOKEN REFRESH
    # -------------------------------------------------------------------------

    async def refresh(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> RefreshedToken:
        """
        Use a refresh token to get a new access token.

        Returns:
            RefreshedToken; refresh_token is set only if Google rotated it

        Raises:
            RefreshFailedError: If the refresh token is invalid, revoked, or
                Google is unreachable
        """
        data = {
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing access token")
        token_response = await self._post_token_request(data, RefreshFailedError)

        return RefreshedToken(
            access_token=token_response.access_token,
            expires_in=token_response.get_expires_in(),
            refresh_token=token_response.refresh_token,
        )

    # -------------------------------------------------------------------------
    # TOKEN REVOCATION
    # -------------------------------------------------------------------------

    async def revoke_token(self, token: str) -> bool:
        """
        Revoke an access or refresh token.

        Called when a tenant disconnects an end-user. Failure is logged and
        reported as False; it never raises.
        """
        logger.info("Revoking Google token")

        async with self._client() as client:
            try:
                response = await client.post(
                    self.revoke_url,
                    params={"token": token},
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            except httpx.RequestError as e:
                logger.warning(f"Network error during token revocation: {type(e).__name__}")
                return False

        if response.status_code != 200:
            logger.warning(f"Token revocation returned status {response.status_code}")
            return False
        return True

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    async def _post_token_request(
        self,
        data: dict,
        error_cls: Type[ProviderError],
    ) -> GoogleTokenResponse:
        """POST a form to the token endpoint and parse a successful response."""
        async with self._client() as client:
            try:
                response = await client.post(self.token_url, data=data)
            except httpx.TimeoutException as e:
                logger.warning(f"Google token endpoint timed out after {self.timeout}s")
                raise error_cls(provider_message="timeout") from e
            except httpx.RequestError as e:
                logger.warning(f"Network error calling Google token endpoint: {type(e).__name__}")
                raise error_cls(provider_message=str(e)) from e

        if not response.is_success:
            provider_message = _describe_error(response)
            logger.warning(
                f"Google token endpoint returned {response.status_code}: {provider_message}"
            )
            raise error_cls(provider_message=provider_message)

        try:
            return GoogleTokenResponse(**response.json())
        except (ValueError, TypeError, PydanticValidationError) as e:
            logger.warning("Google token endpoint returned an unreadable body")
            raise error_cls(provider_message="malformed token response") from e


def _describe_error(response: httpx.Response) -> str:
    """Extract Google's error code/description, falling back to the raw body."""
    try:
        return GoogleErrorResponse(**response.json()).describe()
    except (ValueError, TypeError, PydanticValidationError):
        return response.text[:200]
