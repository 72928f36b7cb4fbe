"""
Provider credential model - a tenant's own Google OAuth client.

Tenants register an OAuth client in their Google Cloud project and hand the
broker its client id and secret. The broker then runs the consent flow under
the tenant's app, so end-users see the tenant's name on the consent screen.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agentauth.db.base import Base

if TYPE_CHECKING:
    from agentauth.models.tenant import Tenant


class ProviderCredential(Base):
    """
    SQLAlchemy ORM model for the 'provider_credentials' table.

    At most one row per tenant (unique tenant_id); saving again updates it.
    """

    __tablename__ = "provider_credentials"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # unique=True: enforced by the database, not just assumed by the service
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # ---------------------------------------------------------------------------
    # OAUTH CLIENT
    # ---------------------------------------------------------------------------
    # client_id: Public identifier, stored in plaintext
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # client_secret_encrypted: SecretCipher envelope; plaintext is never stored
    client_secret_encrypted: Mapped[str] = mapped_column(Text, nullable=False)

    redirect_uri: Mapped[str] = mapped_column(String(2048), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="provider_credential")

    def __repr__(self) -> str:
        return f"<ProviderCredential(tenant_id={self.tenant_id}, client_id='{self.client_id}')>"
