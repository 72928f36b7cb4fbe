"""
Tenants router - the logged-in tenant's own account.
"""

from fastapi import APIRouter, Depends

from agentauth.deps import get_current_tenant
from agentauth.models.tenant import Tenant
from agentauth.schemas.tenant import TenantOut

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get("/me", response_model=TenantOut)
def read_me(current_tenant: Tenant = Depends(get_current_tenant)):
    return current_tenant
