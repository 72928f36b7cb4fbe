"""
User token model - an end-user's Google grant held on behalf of a tenant.

One row per (tenant, end-user, service). Both tokens are stored as
SecretCipher envelopes; only the broker ever sees the plaintext.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agentauth.db.base import Base

if TYPE_CHECKING:
    from agentauth.models.tenant import Tenant


class UserToken(Base):
    """
    SQLAlchemy ORM model for the 'user_tokens' table.

    Reconnecting the same end-user to the same service overwrites the row
    instead of adding a second one.
    """

    __tablename__ = "user_tokens"
    __table_args__ = (
        UniqueConstraint("tenant_id", "external_user_id", "service", name="uq_user_tokens_owner"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ---------------------------------------------------------------------------
    # OWNER
    # ---------------------------------------------------------------------------
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    service: Mapped[str] = mapped_column(String(50), nullable=False)

    # ---------------------------------------------------------------------------
    # TOKENS (encrypted)
    # ---------------------------------------------------------------------------
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)

    # expires_at: Access token expiry as reported by Google
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # scopes: Short scope names the end-user actually granted
    scopes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # ---------------------------------------------------------------------------
    # TIMESTAMPS
    # ---------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="user_tokens")

    def __repr__(self) -> str:
        return (
            f"<UserToken(tenant_id={self.tenant_id}, user='{self.external_user_id}', "
            f"service='{self.service}')>"
        )
