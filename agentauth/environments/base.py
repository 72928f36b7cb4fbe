"""
Base classes and interfaces for OAuth provider integrations.

This module defines the contract every provider client implements and the
closed set of services the broker can connect end-users to.

Design Pattern: Strategy + Factory
==================================
- OAuthProviderClient: Abstract base for a provider's token endpoints
- SupportedService: Closed enumeration of connectable services
- get_provider_client(): Picks the client for a service

Only Google exists today. Adding a provider means a new SupportedService
member, a new client module and one branch in get_provider_client().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import httpx

from agentauth.core.config import Settings
from agentauth.core.exceptions import UnsupportedServiceError


# ---------------------------------------------------------------------------
# SUPPORTED SERVICES
# ---------------------------------------------------------------------------


class SupportedService(str, Enum):
    """Services an end-user can connect through the broker."""

    GOOGLE = "google"

    @classmethod
    def parse(cls, value: str) -> "SupportedService":
        """
        Convert a request value into a SupportedService.

        Raises:
            UnsupportedServiceError: If the value names no supported service
        """
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedServiceError(value) from None


# ---------------------------------------------------------------------------
# DATA STRUCTURES
# ---------------------------------------------------------------------------


@dataclass
class TokenGrant:
    """
    Result of exchanging an authorization code.

    refresh_token is None when the provider did not issue one; the broker
    treats that as a failed exchange because it could never refresh.
    """
    access_token: str
    refresh_token: Optional[str]
    expires_in: int
    scope: str = ""


@dataclass
class RefreshedToken:
    """Result of a refresh. refresh_token is set only when the provider rotated it."""
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None


# ---------------------------------------------------------------------------
# ABSTRACT BASE CLASS
# ---------------------------------------------------------------------------


class OAuthProviderClient(ABC):
    """
    Abstract base class for OAuth provider clients.

    Clients are stateless: the tenant's client id and secret are passed into
    every call because each tenant brings their own OAuth app.
    """

    # Unique identifier for this provider (matches a SupportedService value)
    provider_name: str = ""

    @abstractmethod
    def build_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: List[str],
        state: str,
    ) -> str:
        """
        Build the consent URL the end-user is sent to.

        Args:
            client_id: Tenant's OAuth client id
            redirect_uri: Broker callback URL
            scopes: Provider scope strings
            state: Single-use state token

        Returns:
            Absolute authorization URL
        """
        pass

    @abstractmethod
    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Raises:
            ExchangeFailedError: On rejection, transport error or timeout
        """
        pass

    @abstractmethod
    async def refresh(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> RefreshedToken:
        """
        Obtain a new access token from a refresh token.

        Raises:
            RefreshFailedError: On rejection, transport error or timeout
        """
        pass

    @abstractmethod
    async def revoke_token(self, token: str) -> bool:
        """Revoke a token at the provider. Returns True on success, never raises."""
        pass


# ---------------------------------------------------------------------------
# FACTORY
# ---------------------------------------------------------------------------


def get_provider_client(
    service: SupportedService,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OAuthProviderClient:
    """
    Return the provider client for a service.

    Args:
        service: Parsed service
        settings: Supplies endpoint URLs and the request timeout
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """
    if service is SupportedService.GOOGLE:
        # Imported here: the Google client module imports this one
        from agentauth.environments.google.auth.client import GoogleAuthClient

        return GoogleAuthClient(settings, transport=transport)

    raise UnsupportedServiceError(str(service))
