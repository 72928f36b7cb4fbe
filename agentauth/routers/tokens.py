"""
Tokens router - hands out valid access tokens to tenant backends.

Endpoints:
==========
- GET /v1/token?userId=...&service=google → Fresh access token

If the stored access token expires within TOKEN_REFRESH_BUFFER_SECONDS it
is refreshed through Google before being returned.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from agentauth.deps import get_api_tenant_id, get_token_broker
from agentauth.schemas.broker import TokenResponse
from agentauth.services.token_broker import TokenBroker

router = APIRouter(prefix="/v1", tags=["broker"])


@router.get("/token", response_model=TokenResponse)
async def get_token(
    user_id: Optional[str] = Query(None, alias="userId", description="Tenant's end-user id"),
    service: str = Query("google"),
    tenant_id: uuid.UUID = Depends(get_api_tenant_id),
    broker: TokenBroker = Depends(get_token_broker),
):
    """
    Return a valid access token for an end-user.

    Raises:
        401 invalid_api_key
        400 invalid_request: Missing userId or unsupported service
        404 user_not_connected: The end-user never completed consent
        400 refresh_failed: Google rejected the refresh; reconnect the user
    """
    token = await broker.get_token(tenant_id, user_id, service)
    return TokenResponse(
        access_token=token.access_token,
        expires_at=token.expires_at,
        scopes=token.scopes,
    )
