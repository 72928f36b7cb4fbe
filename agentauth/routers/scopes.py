"""
Scopes router - public catalogue of the scope names tenants may request.
"""

from fastapi import APIRouter

from agentauth.schemas.broker import ScopeCatalogueResponse, ScopeOut
from agentauth.services.scopes import scope_registry

router = APIRouter(prefix="/v1", tags=["broker"])


@router.get("/scopes", response_model=ScopeCatalogueResponse)
def list_scopes():
    """No authentication required."""
    return ScopeCatalogueResponse(
        scopes=[ScopeOut(**entry) for entry in scope_registry.catalogue()]
    )
