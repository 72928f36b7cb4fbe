"""
API key schemas - dashboard key management bodies.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from agentauth.schemas.common import CamelModel


class ApiKeyCreate(CamelModel):
    """
    Example request body:
    {
        "name": "Production"
    }
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class ApiKeyOut(CamelModel):
    """
    Listing view of a key. Only the prefix is known after creation, so the
    masked form hides everything after it.
    """
    id: uuid.UUID
    name: str
    prefix: str
    masked_key: str
    is_active: bool
    last_used_at: Optional[datetime] = None
    created_at: datetime


class ApiKeyCreated(ApiKeyOut):
    # key: Full API key, returned only in the creation response
    key: str


class ApiKeyCreatedResponse(CamelModel):
    success: bool = True
    api_key: ApiKeyCreated


class ApiKeyListResponse(CamelModel):
    success: bool = True
    api_keys: List[ApiKeyOut]
