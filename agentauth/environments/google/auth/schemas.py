"""
Google OAuth Schemas - scope constants and token endpoint payloads.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# OAUTH SCOPE CONSTANTS
# ---------------------------------------------------------------------------
# Tenants ask for short canonical names; Google wants the full scope strings.
#
# Reference: https://developers.google.com/identity/protocols/oauth2/scopes

GOOGLE_SCOPE_MAP: Dict[str, str] = {
    "gmail.send": "https://www.googleapis.com/auth/gmail.send",
    "gmail.readonly": "https://www.googleapis.com/auth/gmail.readonly",
    "gmail.full": "https://mail.google.com/",
    "calendar.readonly": "https://www.googleapis.com/auth/calendar.readonly",
    "calendar.write": "https://www.googleapis.com/auth/calendar",
    "drive.readonly": "https://www.googleapis.com/auth/drive.readonly",
    "drive.file": "https://www.googleapis.com/auth/drive.file",
}

SCOPE_DESCRIPTIONS: Dict[str, str] = {
    "gmail.send": "Send emails",
    "gmail.readonly": "Read emails",
    "gmail.full": "Full Gmail access",
    "calendar.readonly": "Read calendar",
    "calendar.write": "Read and write calendar",
    "drive.readonly": "Read Drive files",
    "drive.file": "Read and write Drive files",
}

# Default when a connect request names no scopes
DEFAULT_SCOPES: List[str] = ["gmail.readonly"]

# Google omits expires_in only in unusual responses; access tokens live an hour
DEFAULT_EXPIRES_IN = 3600


# ---------------------------------------------------------------------------
# TOKEN RESPONSES
# ---------------------------------------------------------------------------


class GoogleTokenResponse(BaseModel):
    """
    Response from Google's token endpoint.

    Returned both for the authorization code exchange and for refreshes.

    Example response from Google:
    {
        "access_token": "ya29.a0AfB_byC...",
        "expires_in": 3599,
        "refresh_token": "1//0eXyz...",
        "scope": "https://www.googleapis.com/auth/gmail.send",
        "token_type": "Bearer"
    }
    """
    access_token: str = Field(..., description="OAuth access token")
    token_type: str = Field(default="Bearer", description="Token type (usually Bearer)")
    expires_in: Optional[int] = Field(None, description="Seconds until expiration")
    refresh_token: Optional[str] = Field(None, description="Refresh token for renewal")
    scope: Optional[str] = Field(None, description="Space-separated scopes granted")

    def get_scopes_list(self) -> List[str]:
        """Convert space-separated scope string to list."""
        if self.scope:
            return self.scope.split()
        return []

    def get_expires_in(self) -> int:
        return self.expires_in if self.expires_in is not None else DEFAULT_EXPIRES_IN


class GoogleErrorResponse(BaseModel):
    """Error body Google returns with a non-2xx token response."""
    error: str = Field(default="unknown_error")
    error_description: Optional[str] = None

    def describe(self) -> str:
        if self.error_description:
            return f"{self.error}: {self.error_description}"
        return self.error
