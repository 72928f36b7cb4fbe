"""
Provisioning service - creates and removes tenant accounts.

A new tenant always starts with one active API key named "Default" so it can
call the broker immediately. Used by dashboard registration and by the
identity provider's signup webhook.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from agentauth.core.exceptions import ConflictError, NotFoundError, SessionAuthenticationError
from agentauth.core.security import hash_password, verify_password
from agentauth.models.tenant import Tenant
from agentauth.services.api_keys import DEFAULT_KEY_NAME, ApiKeyService


logger = logging.getLogger("agentauth.services.provisioning")


class ProvisioningService:

    def __init__(self, db: Session):
        self.db = db

    def provision_tenant(
        self,
        email: str,
        password: Optional[str] = None,
        display_name: Optional[str] = None,
        external_id: Optional[str] = None,
    ) -> tuple[Tenant, str]:
        """
        Create a tenant and its default API key.

        Args:
            email: Unique contact/login email
            password: Dashboard password; None for webhook-created tenants
            display_name: Optional friendly name
            external_id: Identity provider user id (signup webhook)

        Returns:
            Tuple of (tenant, full default API key). The key is not
            recoverable later.

        Raises:
            ConflictError: Email or external id already registered
        """
        email = email.strip().lower()
        if self.db.query(Tenant).filter(Tenant.email == email).first():
            raise ConflictError("Email already registered")

        tenant = Tenant(
            email=email,
            hashed_password=hash_password(password) if password else None,
            display_name=display_name,
            external_id=external_id,
        )
        self.db.add(tenant)
        try:
            self.db.commit()
        except sa_exc.IntegrityError:
            self.db.rollback()
            raise ConflictError("Tenant already exists")
        self.db.refresh(tenant)

        full_key, _ = ApiKeyService(self.db).issue(tenant.id, DEFAULT_KEY_NAME)

        logger.info(f"Provisioned tenant {tenant.id}")
        return tenant, full_key

    def authenticate(self, email: str, password: str) -> Tenant:
        """
        Check dashboard credentials.

        Raises:
            SessionAuthenticationError: Unknown email, wrong password or
                inactive tenant (never distinguished)
        """
        tenant = self.db.query(Tenant).filter(Tenant.email == email.strip().lower()).first()
        if (
            not tenant
            or not tenant.hashed_password
            or not verify_password(password, tenant.hashed_password)
            or not tenant.is_active
        ):
            raise SessionAuthenticationError("Invalid email or password")
        return tenant

    def delete_tenant(self, tenant_id: UUID) -> None:
        """
        Delete a tenant with its keys, credentials, states and user tokens.

        Raises:
            NotFoundError: Unknown tenant
        """
        tenant = self.db.get(Tenant, tenant_id)
        if not tenant:
            raise NotFoundError("Tenant not found.")
        self.db.delete(tenant)
        self.db.commit()
        logger.info(f"Deleted tenant {tenant_id}")
