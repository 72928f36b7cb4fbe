"""
API key model - bearer credentials tenants use to call the broker API.

Only a SHA-256 hash of each key is stored. The full key is shown to the
tenant once, at creation, and cannot be recovered afterwards.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agentauth.db.base import Base

if TYPE_CHECKING:
    from agentauth.models.tenant import Tenant


class ApiKey(Base):
    """
    SQLAlchemy ORM model for the 'api_keys' table.

    Revoking a key flips ``is_active`` instead of deleting the row so that
    historical usage stays attributable.
    """

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ---------------------------------------------------------------------------
    # KEY MATERIAL
    # ---------------------------------------------------------------------------
    # key_prefix: Displayable format marker ("aa_live_")
    key_prefix: Mapped[str] = mapped_column(String(16), nullable=False)

    # key_hash: SHA-256 hex digest of the full key
    # - unique=True: lookups are always by hash, never by prefix
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False, default="Default")

    is_active: Mapped[bool] = mapped_column(default=True)

    # last_used_at: Updated best-effort on each successful validation
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="api_keys")

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, tenant_id={self.tenant_id}, active={self.is_active})>"
