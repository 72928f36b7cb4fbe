"""
Provider credential service - stores each tenant's Google OAuth client.

The client secret is encrypted with the SecretCipher before it is written
and decrypted only at the moment a token request needs it.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from agentauth.core.cipher import SecretCipher
from agentauth.core.config import Settings
from agentauth.core.exceptions import NotConfiguredError, ValidationError
from agentauth.models.provider_credential import ProviderCredential


logger = logging.getLogger("agentauth.services.provider_credentials")


class ProviderCredentialService:
    """
    CRUD for a tenant's (single) Google OAuth client.

    Example:
        service = ProviderCredentialService(db, cipher, settings)
        service.save(tenant.id, "123.apps.googleusercontent.com", "GOCSPX-...")
        cred = service.require(tenant.id)
        secret = service.decrypt_secret(cred)
    """

    def __init__(self, db: Session, cipher: SecretCipher, settings: Settings):
        self.db = db
        self.cipher = cipher
        self.default_redirect_uri = settings.DEFAULT_REDIRECT_URI

    def get(self, tenant_id: UUID) -> Optional[ProviderCredential]:
        return self.db.query(ProviderCredential).filter(
            ProviderCredential.tenant_id == tenant_id
        ).first()

    def require(self, tenant_id: UUID) -> ProviderCredential:
        """
        Like get(), but a missing record is an error.

        Raises:
            NotConfiguredError: Tenant has not saved credentials yet
        """
        credential = self.get(tenant_id)
        if not credential:
            raise NotConfiguredError()
        return credential

    def decrypt_secret(self, credential: ProviderCredential) -> str:
        """Raises IntegrityError if the stored secret cannot be decrypted."""
        return self.cipher.decrypt(credential.client_secret_encrypted)

    def save(
        self,
        tenant_id: UUID,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
    ) -> ProviderCredential:
        """
        Insert or update the tenant's credentials.

        Args:
            tenant_id: Owner
            client_id: Google OAuth client id (stored in plaintext)
            client_secret: Google OAuth client secret (stored encrypted)
            redirect_uri: Defaults to DEFAULT_REDIRECT_URI

        Raises:
            ValidationError: Missing client id or secret
        """
        client_id = (client_id or "").strip()
        if not client_id or not client_secret:
            raise ValidationError("Client ID and Client Secret are required.")

        values = {
            "client_id": client_id,
            "client_secret_encrypted": self.cipher.encrypt(client_secret),
            "redirect_uri": redirect_uri or self.default_redirect_uri,
        }

        credential = self.get(tenant_id)
        if credential is None:
            credential = ProviderCredential(tenant_id=tenant_id, **values)
            self.db.add(credential)
            try:
                self.db.commit()
            except sa_exc.IntegrityError:
                # A concurrent save inserted first; update that row instead
                self.db.rollback()
                credential = self.get(tenant_id)
                if credential is None:
                    raise
                self._apply(credential, values)
                self.db.commit()
        else:
            self._apply(credential, values)
            self.db.commit()

        self.db.refresh(credential)
        logger.info(f"Saved Google OAuth credentials for tenant {tenant_id}")
        return credential

    def delete(self, tenant_id: UUID) -> bool:
        """Remove the tenant's credentials. Returns False if there were none."""
        credential = self.get(tenant_id)
        if not credential:
            return False
        self.db.delete(credential)
        self.db.commit()
        logger.info(f"Deleted Google OAuth credentials for tenant {tenant_id}")
        return True

    @staticmethod
    def _apply(credential: ProviderCredential, values: dict) -> None:
        for field, value in values.items():
            setattr(credential, field, value)
