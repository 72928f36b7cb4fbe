"""
Broker schemas - request/response bodies of the public /v1 API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from agentauth.environments.google.auth.schemas import DEFAULT_SCOPES
from agentauth.schemas.common import CamelModel


# ---------------------------------------------------------------------------
# REQUEST SCHEMAS
# ---------------------------------------------------------------------------

class ConnectUrlRequest(CamelModel):
    """
    Body of POST /v1/connect-url.

    Example request body:
    {
        "userId": "user_123",
        "service": "google",
        "scopes": ["gmail.send", "calendar.readonly"],
        "redirectUrl": "https://yourapp.com/connected"
    }
    """
    # user_id: The tenant's identifier for its end-user (opaque to the broker)
    user_id: str = Field(..., max_length=255)

    service: str = "google"

    # scopes: Canonical scope names; see GET /v1/scopes
    scopes: List[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    # redirect_url: Where the end-user lands after consent (optional)
    redirect_url: Optional[str] = Field(None, max_length=2048)


# ---------------------------------------------------------------------------
# RESPONSE SCHEMAS
# ---------------------------------------------------------------------------

class ConnectUrlResponse(CamelModel):
    """
    Example response:
    {
        "success": true,
        "connectUrl": "https://accounts.google.com/o/oauth2/v2/auth?...",
        "expiresIn": 600
    }
    """
    success: bool = True
    connect_url: str
    expires_in: int


class TokenResponse(CamelModel):
    """
    Example response:
    {
        "success": true,
        "accessToken": "ya29.a0AfB_byC...",
        "expiresAt": "2026-01-01T12:00:00Z",
        "scopes": ["gmail.send"]
    }
    """
    success: bool = True
    access_token: str
    expires_at: datetime
    scopes: List[str]


class ConnectionStatusResponse(CamelModel):
    success: bool = True
    user_id: str
    service: str
    connected: bool
    scopes: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    is_expired: Optional[bool] = None


class ScopeOut(CamelModel):
    name: str
    scope: str
    description: str


class ScopeCatalogueResponse(CamelModel):
    success: bool = True
    service: str = "google"
    scopes: List[ScopeOut]


class SuccessResponse(CamelModel):
    success: bool = True
