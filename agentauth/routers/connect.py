"""
Connect router - starts the OAuth consent flow for an end-user.

Endpoints:
==========
- POST /v1/connect-url → Consent URL for one end-user

Called by tenant backends with "Authorization: Bearer aa_live_...".
"""

import uuid

from fastapi import APIRouter, Depends

from agentauth.deps import get_api_tenant_id, get_token_broker
from agentauth.schemas.broker import ConnectUrlRequest, ConnectUrlResponse
from agentauth.services.token_broker import TokenBroker

# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/v1", tags=["broker"])


# ---------------------------------------------------------------------------
# POST /v1/connect-url - Generate a Google consent URL
# ---------------------------------------------------------------------------
@router.post("/connect-url", response_model=ConnectUrlResponse)
def create_connect_url(
    payload: ConnectUrlRequest,
    tenant_id: uuid.UUID = Depends(get_api_tenant_id),
    broker: TokenBroker = Depends(get_token_broker),
):
    """
    Generate the URL an end-user opens to grant the tenant access.

    The tenant's backend sends the end-user to connectUrl. After consent,
    Google returns the browser to /api/oauth/callback and from there to
    redirectUrl (if given).

    Returns:
        ConnectUrlResponse with connectUrl and expiresIn (seconds)

    Raises:
        401 invalid_api_key
        400 invalid_request: Bad service, scopes, userId or redirectUrl
        400 credentials_not_configured: No Google OAuth client saved yet
    """
    connect = broker.begin_connect(
        tenant_id=tenant_id,
        external_user_id=payload.user_id,
        service=payload.service,
        scope_names=payload.scopes,
        redirect_url=payload.redirect_url,
    )
    return ConnectUrlResponse(connect_url=connect.connect_url, expires_in=connect.expires_in)
