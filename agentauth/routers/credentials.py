"""
Credentials router - the tenant's Google OAuth client (id + secret).

Endpoints:
==========
- GET /credentials    → Current credentials (secret never returned)
- POST /credentials   → Save or replace credentials
- DELETE /credentials → Remove credentials

All endpoints require a dashboard session.
"""

from fastapi import APIRouter, Depends

from agentauth.deps import get_credential_service, get_current_tenant
from agentauth.models.tenant import Tenant
from agentauth.schemas.broker import SuccessResponse
from agentauth.schemas.credentials import CredentialsOut, CredentialsResponse, CredentialsSave
from agentauth.services.provider_credentials import ProviderCredentialService

router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.get("", response_model=CredentialsResponse)
def get_credentials(
    current_tenant: Tenant = Depends(get_current_tenant),
    service: ProviderCredentialService = Depends(get_credential_service),
):
    credential = service.get(current_tenant.id)
    if credential is None:
        return CredentialsResponse(credentials=None)
    return CredentialsResponse(credentials=CredentialsOut.model_validate(credential))


@router.post("", response_model=CredentialsResponse)
def save_credentials(
    payload: CredentialsSave,
    current_tenant: Tenant = Depends(get_current_tenant),
    service: ProviderCredentialService = Depends(get_credential_service),
):
    """
    Save the Google OAuth client. Saving again replaces the previous one.

    redirectUri defaults to DEFAULT_REDIRECT_URI when omitted.
    """
    credential = service.save(
        current_tenant.id,
        client_id=payload.client_id,
        client_secret=payload.client_secret,
        redirect_uri=payload.redirect_uri,
    )
    return CredentialsResponse(credentials=CredentialsOut.model_validate(credential))


@router.delete("", response_model=SuccessResponse)
def delete_credentials(
    current_tenant: Tenant = Depends(get_current_tenant),
    service: ProviderCredentialService = Depends(get_credential_service),
):
    service.delete(current_tenant.id)
    return SuccessResponse()
