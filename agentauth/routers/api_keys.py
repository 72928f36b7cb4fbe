"""
API keys router - dashboard management of a tenant's API keys.

Endpoints:
==========
- POST /api-keys           → Issue a key (full key returned once)
- GET /api-keys            → List active keys (masked)
- DELETE /api-keys/{id}    → Revoke a key

All endpoints require a dashboard session.
"""

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from agentauth.db.session import get_db
from agentauth.deps import get_current_tenant
from agentauth.models.api_key import ApiKey
from agentauth.models.tenant import Tenant
from agentauth.schemas.api_key import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyOut,
)
from agentauth.services.api_keys import ApiKeyService

router = APIRouter(prefix="/api-keys", tags=["api-keys"])


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------

def to_key_out(api_key: ApiKey) -> dict:
    """Listing fields of a key; the secret part is never known after creation."""
    return {
        "id": api_key.id,
        "name": api_key.name,
        "prefix": api_key.key_prefix,
        "masked_key": f"{api_key.key_prefix}{'•' * 20}",
        "is_active": api_key.is_active,
        "last_used_at": api_key.last_used_at,
        "created_at": api_key.created_at,
    }


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------

@router.post("", response_model=ApiKeyCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_api_key(
    payload: ApiKeyCreate | None = None,
    current_tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
):
    """
    Issue a new API key. The body (and its name) is optional.

    Returns:
        The full key in apiKey.key. Store it now; it is never shown again.
    """
    name = payload.name if payload else None
    full_key, record = ApiKeyService(db).issue(current_tenant.id, name)
    return ApiKeyCreatedResponse(api_key=ApiKeyCreated(key=full_key, **to_key_out(record)))


@router.get("", response_model=ApiKeyListResponse)
def list_api_keys(
    current_tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
):
    """Active keys, newest first."""
    keys = ApiKeyService(db).list_keys(current_tenant.id)
    return ApiKeyListResponse(api_keys=[ApiKeyOut(**to_key_out(key)) for key in keys])


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_api_key(
    key_id: uuid.UUID,
    current_tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db),
):
    """
    Revoke a key. Requests using it fail with 401 from now on.

    Raises:
        404 not_found: Unknown key, or a key owned by another tenant
    """
    ApiKeyService(db).revoke(current_tenant.id, key_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
