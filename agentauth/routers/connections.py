"""
Connections router - inspect or remove an end-user's Google connection.

Endpoints:
==========
- GET /v1/connections/{userId}    → Connection status (nothing decrypted)
- DELETE /v1/connections/{userId} → Revoke at Google and forget the tokens
"""

import uuid

from fastapi import APIRouter, Depends, Query

from agentauth.deps import get_api_tenant_id, get_token_broker
from agentauth.schemas.broker import ConnectionStatusResponse, SuccessResponse
from agentauth.services.token_broker import TokenBroker

router = APIRouter(prefix="/v1/connections", tags=["broker"])


@router.get("/{user_id}", response_model=ConnectionStatusResponse)
def get_connection(
    user_id: str,
    service: str = Query("google"),
    tenant_id: uuid.UUID = Depends(get_api_tenant_id),
    broker: TokenBroker = Depends(get_token_broker),
):
    """
    Report whether an end-user is connected, with granted scopes and expiry.

    isExpired uses the same buffer as GET /v1/token, so true means the next
    token read will refresh.
    """
    status = broker.connection_status(tenant_id, user_id, service)
    return ConnectionStatusResponse(
        user_id=user_id,
        service=service,
        connected=status.connected,
        scopes=status.scopes,
        expires_at=status.expires_at,
        is_expired=status.is_expired,
    )


@router.delete("/{user_id}", response_model=SuccessResponse)
async def delete_connection(
    user_id: str,
    service: str = Query("google"),
    tenant_id: uuid.UUID = Depends(get_api_tenant_id),
    broker: TokenBroker = Depends(get_token_broker),
):
    """
    Disconnect an end-user.

    Raises:
        404 user_not_connected: Nothing stored for this user
    """
    await broker.disconnect(tenant_id, user_id, service)
    return SuccessResponse()
