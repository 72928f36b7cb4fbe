"""
Environments Module - OAuth provider integrations.

Architecture Overview:
======================
environments/
├── __init__.py           # Module exports
├── base.py               # Provider contract, SupportedService, factory
└── google/
    └── auth/
        ├── client.py     # Google token endpoint client
        └── schemas.py    # Scope map and token payloads
"""

from agentauth.environments.base import (
    OAuthProviderClient,
    RefreshedToken,
    SupportedService,
    TokenGrant,
    get_provider_client,
)

__all__ = [
    "OAuthProviderClient",
    "RefreshedToken",
    "SupportedService",
    "TokenGrant",
    "get_provider_client",
]
