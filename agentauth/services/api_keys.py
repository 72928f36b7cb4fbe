"""
API key service - issues, validates and revokes tenant API keys.

Keys look like ``aa_live_<32 url-safe chars>``. Only a SHA-256 hash is
stored, so a presented key is validated by hashing it and looking the hash
up. The shape is checked first; malformed keys never reach the database.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agentauth.core.exceptions import AuthenticationError, NotFoundError
from agentauth.core.security import generate_api_key, hash_api_key, is_valid_api_key_format
from agentauth.core.timeutils import utcnow
from agentauth.models.api_key import ApiKey


logger = logging.getLogger("agentauth.services.api_keys")

DEFAULT_KEY_NAME = "Default"


class ApiKeyService:
    """
    Manages the API keys of tenants.

    Example:
        service = ApiKeyService(db)
        full_key, record = service.issue(tenant.id, "Production")
        # full_key is shown once; only record.key_hash is persisted

        tenant_id = service.validate(presented_key)
    """

    def __init__(self, db: Session):
        self.db = db

    def issue(self, tenant_id: UUID, name: Optional[str] = None) -> tuple[str, ApiKey]:
        """
        Create a new active key for a tenant.

        Args:
            tenant_id: Owner of the key
            name: Display name (defaults to "Default")

        Returns:
            Tuple of (full_key, stored record). The full key is not
            recoverable after this call returns.
        """
        key, prefix, key_hash = generate_api_key()
        record = ApiKey(
            tenant_id=tenant_id,
            key_prefix=prefix,
            key_hash=key_hash,
            name=name or DEFAULT_KEY_NAME,
            is_active=True,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)

        logger.info(f"Issued API key {record.id} for tenant {tenant_id}")
        return key, record

    def validate(self, presented: Optional[str]) -> UUID:
        """
        Resolve a presented API key to its tenant.

        Args:
            presented: Raw bearer value from the Authorization header

        Returns:
            The owning tenant's ID

        Raises:
            AuthenticationError: Missing, malformed, unknown or revoked key
        """
        if not presented or not is_valid_api_key_format(presented):
            raise AuthenticationError()

        api_key = self.db.query(ApiKey).filter(
            ApiKey.key_hash == hash_api_key(presented),
            ApiKey.is_active.is_(True),
        ).first()

        if not api_key:
            logger.info("Rejected unknown or revoked API key")
            raise AuthenticationError()

        tenant_id = api_key.tenant_id
        self._touch(api_key)
        return tenant_id

    def revoke(self, tenant_id: UUID, key_id: UUID) -> None:
        """
        Deactivate a key. The row and its hash stay in place.

        Raises:
            NotFoundError: Unknown key, or a key owned by another tenant
        """
        api_key = self.db.query(ApiKey).filter(
            ApiKey.id == key_id,
            ApiKey.tenant_id == tenant_id,
        ).first()

        if not api_key:
            raise NotFoundError("API key not found.")

        api_key.is_active = False
        self.db.commit()
        logger.info(f"Revoked API key {key_id} for tenant {tenant_id}")

    def list_keys(self, tenant_id: UUID) -> list[ApiKey]:
        """Active keys of a tenant, newest first."""
        return (
            self.db.query(ApiKey)
            .filter(ApiKey.tenant_id == tenant_id, ApiKey.is_active.is_(True))
            .order_by(ApiKey.created_at.desc())
            .all()
        )

    def _touch(self, api_key: ApiKey) -> None:
        # Usage tracking must never fail the request it belongs to
        try:
            api_key.last_used_at = utcnow()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Could not record last use of API key {api_key.id}: {type(e).__name__}")
