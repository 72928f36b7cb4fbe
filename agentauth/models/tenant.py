"""
Tenant model - a developer account that uses the broker for its end-users.

A tenant owns API keys, at most one set of Google OAuth client credentials,
pending OAuth states and the token records of its end-users. Nothing is
shared between tenants.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agentauth.db.base import Base

if TYPE_CHECKING:
    from agentauth.models.api_key import ApiKey
    from agentauth.models.oauth_state import OAuthState
    from agentauth.models.provider_credential import ProviderCredential
    from agentauth.models.user_token import UserToken


class Tenant(Base):
    """
    SQLAlchemy ORM model for the 'tenants' table.

    Tenants are created by the provisioning service (dashboard registration
    or the signup webhook). Deleting a tenant deletes everything it owns.
    """

    __tablename__ = "tenants"

    # ---------------------------------------------------------------------------
    # PRIMARY KEY
    # ---------------------------------------------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ---------------------------------------------------------------------------
    # IDENTITY
    # ---------------------------------------------------------------------------
    # email: Dashboard login, unique across tenants
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    # hashed_password: bcrypt hash for dashboard login (never the plaintext)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # external_id: Identity-provider user id when created by the signup webhook
    external_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(default=True)

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

    # ---------------------------------------------------------------------------
    # RELATIONSHIPS
    # ---------------------------------------------------------------------------
    # cascade="all, delete-orphan": deleting the tenant through the ORM removes
    # its rows even on databases without enforced foreign keys (SQLite).
    api_keys: Mapped[list["ApiKey"]] = relationship(
        "ApiKey", back_populates="tenant", cascade="all, delete-orphan"
    )
    provider_credential: Mapped["ProviderCredential | None"] = relationship(
        "ProviderCredential", back_populates="tenant", cascade="all, delete-orphan", uselist=False
    )
    oauth_states: Mapped[list["OAuthState"]] = relationship(
        "OAuthState", back_populates="tenant", cascade="all, delete-orphan"
    )
    user_tokens: Mapped[list["UserToken"]] = relationship(
        "UserToken", back_populates="tenant", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, email='{self.email}')>"
