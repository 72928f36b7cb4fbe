"""
ORM models for the broker.

Importing the package registers every table on Base.metadata, which the
string-based relationships between models rely on.
"""

from agentauth.models.tenant import Tenant
from agentauth.models.api_key import ApiKey
from agentauth.models.provider_credential import ProviderCredential
from agentauth.models.oauth_state import OAuthState
from agentauth.models.user_token import UserToken

__all__ = [
    "Tenant",
    "ApiKey",
    "ProviderCredential",
    "OAuthState",
    "UserToken",
]
