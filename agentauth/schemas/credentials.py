"""
Credential schemas - a tenant's Google OAuth client as seen by the dashboard.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from agentauth.schemas.common import CamelModel


class CredentialsSave(CamelModel):
    """
    Body of POST /credentials.

    Example request body:
    {
        "clientId": "123-abc.apps.googleusercontent.com",
        "clientSecret": "GOCSPX-...",
        "redirectUri": "https://agentauth.online/api/oauth/callback"
    }
    """
    client_id: str = Field(..., min_length=1, max_length=255)

    # client_secret: Encrypted before storage, never returned
    client_secret: str = Field(..., min_length=1)

    redirect_uri: Optional[str] = Field(None, max_length=2048)


class CredentialsOut(CamelModel):
    id: uuid.UUID
    client_id: str
    redirect_uri: str
    created_at: datetime
    updated_at: datetime


class CredentialsResponse(CamelModel):
    """credentials is null when the tenant has not saved any yet."""
    success: bool = True
    credentials: Optional[CredentialsOut] = None
