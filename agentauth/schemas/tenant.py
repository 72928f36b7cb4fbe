"""
Tenant schemas - public view of a tenant account.
"""

import uuid
from datetime import datetime
from typing import Optional

from agentauth.schemas.common import CamelModel


class TenantOut(CamelModel):
    """Never includes the password hash."""
    id: uuid.UUID
    email: str
    display_name: Optional[str] = None
    is_active: bool
    created_at: datetime
