"""
OAuth state model - binds a consent round-trip to the request that started it.

The state token travels through Google and comes back on the callback. It is
the only thing that authenticates the callback, so it is random, short-lived
and usable exactly once.
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


class OAuthState(Base):
    """SQLAlchemy ORM model for the 'oauth_states' table."""

    __tablename__ = "oauth_states"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # state: 32 random bytes, hex encoded
    state: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )

    # external_user_id: The tenant's own identifier for its end-user (opaque)
    external_user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    service: Mapped[str] = mapped_column(String(50), nullable=False)

    # redirect_url: Where the end-user goes after the callback (optional)
    redirect_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="oauth_states")

    def __repr__(self) -> str:
        return f"<OAuthState(tenant_id={self.tenant_id}, user='{self.external_user_id}')>"
