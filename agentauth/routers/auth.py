"""
Auth router - dashboard registration and login.
These are public endpoints (no authentication required).
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from agentauth.core.config import Settings, get_settings
from agentauth.core.security import create_access_token
from agentauth.db.session import get_db
from agentauth.schemas.auth import RegisterResponse, TenantLogin, TenantRegister, Token
from agentauth.schemas.tenant import TenantOut
from agentauth.services.provisioning import ProvisioningService

# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
# - prefix="/auth": All routes here will be under /auth (e.g., /auth/register)
router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# POST /auth/register - Create a tenant account
# ---------------------------------------------------------------------------
@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(payload: TenantRegister, db: Session = Depends(get_db)):
    """
    Register a new tenant.

    The response carries the tenant's "Default" API key. It is shown here
    once and cannot be retrieved again (only revoked and replaced).

    Raises:
        409 already_exists: Email already registered
    """
    tenant, api_key = ProvisioningService(db).provision_tenant(
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
    )
    return RegisterResponse(tenant=TenantOut.model_validate(tenant), api_key=api_key)


# ---------------------------------------------------------------------------
# POST /auth/login - Authenticate and get a JWT token
# ---------------------------------------------------------------------------
@router.post("/login", response_model=Token)
def login(
    payload: TenantLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Authenticate a tenant and return a dashboard session token.

    Raises:
        401 unauthorized: Wrong email or password (never distinguished)
    """
    tenant = ProvisioningService(db).authenticate(payload.email, payload.password)
    return Token(access_token=create_access_token(subject=str(tenant.id), settings=settings))
