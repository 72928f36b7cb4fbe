"""
Dependencies module - reusable FastAPI dependencies for route handlers.

Two kinds of callers authenticate against the broker:
- Tenant backends: "Authorization: Bearer aa_live_..." API keys (get_api_tenant_id)
- The dashboard: "Authorization: Bearer <JWT>" from /auth/login (get_current_tenant)

The remaining dependencies build request-scoped services from the shared
settings and cipher, so tests can override any of them.
"""

import logging
import uuid
from functools import lru_cache
from typing import Optional

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from agentauth.core.cipher import SecretCipher
from agentauth.core.config import Settings, get_settings
from agentauth.core.exceptions import AuthenticationError, InternalError, SessionAuthenticationError
from agentauth.db.session import get_db
from agentauth.models.tenant import Tenant
from agentauth.services.api_keys import ApiKeyService
from agentauth.services.provider_credentials import ProviderCredentialService
from agentauth.services.token_broker import TokenBroker


logger = logging.getLogger("agentauth.deps")

# ---------------------------------------------------------------------------
# SECURITY SCHEME
# ---------------------------------------------------------------------------
# auto_error=False: a missing header reaches our code so the response uses
# the broker's {"error", "message"} body instead of FastAPI's default.
bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# SHARED COMPONENTS
# ---------------------------------------------------------------------------


@lru_cache(maxsize=4)
def _cipher_for_key(hex_key: str) -> SecretCipher:
    return SecretCipher.from_hex(hex_key)


def get_cipher(settings: Settings = Depends(get_settings)) -> SecretCipher:
    """
    The process-wide SecretCipher, built once per ENCRYPTION_KEY.

    Raises:
        InternalError: ENCRYPTION_KEY is missing or invalid
    """
    try:
        return _cipher_for_key(settings.ENCRYPTION_KEY)
    except ValueError:
        logger.error("ENCRYPTION_KEY is missing or invalid; cannot encrypt or decrypt secrets")
        raise InternalError()


def get_provider_transport() -> Optional[httpx.AsyncBaseTransport]:
    """httpx transport for provider calls. None means the real network."""
    return None


def get_token_broker(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    cipher: SecretCipher = Depends(get_cipher),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_provider_transport),
) -> TokenBroker:
    return TokenBroker(db, settings, cipher, transport=transport)


def get_credential_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    cipher: SecretCipher = Depends(get_cipher),
) -> ProviderCredentialService:
    return ProviderCredentialService(db, cipher, settings)


# ---------------------------------------------------------------------------
# API KEY AUTHENTICATION (tenant backends)
# ---------------------------------------------------------------------------


def get_api_tenant_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> uuid.UUID:
    """
    Validate the bearer API key and return the tenant it belongs to.

    Raises:
        AuthenticationError: Header missing, key malformed, unknown or revoked
    """
    if credentials is None:
        raise AuthenticationError("Missing or invalid Authorization header")
    return ApiKeyService(db).validate(credentials.credentials)


# ---------------------------------------------------------------------------
# SESSION AUTHENTICATION (dashboard)
# ---------------------------------------------------------------------------


def get_current_tenant(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Tenant:
    """
    Validate a dashboard JWT and return the tenant.

    Flow:
        1. Extract token from Authorization header
        2. Decode and validate JWT signature and expiration
        3. Extract tenant ID from the "sub" claim
        4. Load the tenant and check it is active

    Raises:
        SessionAuthenticationError: Any failure (the cause is never revealed)
    """
    if credentials is None:
        raise SessionAuthenticationError()

    try:
        payload = jwt.decode(
            credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        subject: str | None = payload.get("sub")
        if subject is None:
            raise SessionAuthenticationError()
        tenant_id = uuid.UUID(subject)
    except (JWTError, ValueError):
        # JWTError covers expired and badly signed tokens; ValueError a bad UUID
        raise SessionAuthenticationError()

    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if tenant is None or not tenant.is_active:
        raise SessionAuthenticationError()

    return tenant
