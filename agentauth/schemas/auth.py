"""
Auth schemas - dashboard registration and login bodies.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from agentauth.schemas.common import CamelModel
from agentauth.schemas.tenant import TenantOut


class TenantRegister(BaseModel):
    """
    Schema for POST /auth/register request body.

    Example request body:
    {
        "email": "dev@example.com",
        "password": "securePassword123",
        "display_name": "Acme Agents"
    }
    """
    email: EmailStr

    # password: Hashed with bcrypt before storage
    password: str = Field(..., min_length=8, max_length=128)

    display_name: Optional[str] = Field(None, max_length=100)


class TenantLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    """
    Schema for POST /auth/login response.

    Example response:
    {
        "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
        "token_type": "bearer"
    }
    """
    access_token: str
    token_type: str = "bearer"


class RegisterResponse(CamelModel):
    """
    Returned once at registration. apiKey is the tenant's "Default" key and
    cannot be retrieved again.
    """
    success: bool = True
    tenant: TenantOut
    api_key: str
