"""
Google Auth Module - OAuth 2.0 token handling for Google services.

OAuth 2.0 Flow Overview:
========================
1. Tenant backend asks the broker for a connect URL
2. End-user is redirected to Google's consent screen (tenant's own app)
3. Google redirects back to the broker with an authorization code
4. Broker exchanges the code for access + refresh tokens and stores them
5. Tenant backend reads fresh access tokens; the broker refreshes as needed
"""

from agentauth.environments.google.auth.client import GoogleAuthClient
from agentauth.environments.google.auth.schemas import (
    DEFAULT_SCOPES,
    GOOGLE_SCOPE_MAP,
    SCOPE_DESCRIPTIONS,
    GoogleTokenResponse,
)

__all__ = [
    "GoogleAuthClient",
    "GoogleTokenResponse",
    "DEFAULT_SCOPES",
    "GOOGLE_SCOPE_MAP",
    "SCOPE_DESCRIPTIONS",
]
