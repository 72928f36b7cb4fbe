"""
Token store - encrypted end-user tokens keyed by (tenant, end-user, service).

Both tokens are sealed with the SecretCipher on every write. Reads return
the ORM record; callers decrypt only the token they actually need.
"""

import logging
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from agentauth.core.cipher import SecretCipher
from agentauth.core.exceptions import NotConnectedError
from agentauth.core.timeutils import utcnow
from agentauth.models.user_token import UserToken


logger = logging.getLogger("agentauth.services.token_store")


class TokenStore:
    """
    Persistence for UserToken records.

    Example:
        store = TokenStore(db, cipher)
        record = store.upsert(tenant.id, "u1", "google", "ya29...", "1//0e...", 3599, ["gmail.send"])
        access_token = store.decrypt_access_token(record)
    """

    def __init__(self, db: Session, cipher: SecretCipher):
        self.db = db
        self.cipher = cipher

    # -------------------------------------------------------------------------
    # READ
    # -------------------------------------------------------------------------

    def find(self, tenant_id: UUID, external_user_id: str, service: str) -> Optional[UserToken]:
        return self.db.query(UserToken).filter(
            UserToken.tenant_id == tenant_id,
            UserToken.external_user_id == external_user_id,
            UserToken.service == service,
        ).first()

    def get(self, tenant_id: UUID, external_user_id: str, service: str) -> UserToken:
        """
        Raises:
            NotConnectedError: No record for the triple
        """
        record = self.find(tenant_id, external_user_id, service)
        if not record:
            raise NotConnectedError()
        return record

    def decrypt_access_token(self, record: UserToken) -> str:
        return self.cipher.decrypt(record.access_token_encrypted)

    def decrypt_refresh_token(self, record: UserToken) -> str:
        return self.cipher.decrypt(record.refresh_token_encrypted)

    # -------------------------------------------------------------------------
    # WRITE
    # -------------------------------------------------------------------------

    def upsert(
        self,
        tenant_id: UUID,
        external_user_id: str,
        service: str,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        scopes: List[str],
    ) -> UserToken:
        """
        Store a fresh grant, replacing any previous one for the same triple.

        Returns:
            The inserted or updated record
        """
        values = {
            "access_token_encrypted": self.cipher.encrypt(access_token),
            "refresh_token_encrypted": self.cipher.encrypt(refresh_token),
            "expires_at": utcnow() + timedelta(seconds=expires_in),
            "scopes": list(scopes),
        }

        record = self.find(tenant_id, external_user_id, service)
        if record is None:
            record = UserToken(
                tenant_id=tenant_id,
                external_user_id=external_user_id,
                service=service,
                **values,
            )
            self.db.add(record)
            try:
                self.db.commit()
            except sa_exc.IntegrityError:
                # Lost an insert race on the unique triple; overwrite the winner
                self.db.rollback()
                record = self.find(tenant_id, external_user_id, service)
                if record is None:
                    raise
                self._apply(record, values)
                self.db.commit()
        else:
            self._apply(record, values)
            self.db.commit()

        self.db.refresh(record)
        logger.info(f"Stored tokens for tenant {tenant_id}, user '{external_user_id}', service {service}")
        return record

    def update_access_token(
        self,
        record_id: UUID,
        access_token: str,
        expires_in: int,
        refresh_token: Optional[str] = None,
    ) -> UserToken:
        """
        Write the result of a refresh.

        Only the access token and expiry change; the refresh token is
        replaced only when Google rotated it. Scopes are left alone.

        Raises:
            NotConnectedError: The record was deleted meanwhile
        """
        record = self.db.get(UserToken, record_id)
        if record is None:
            raise NotConnectedError()

        record.access_token_encrypted = self.cipher.encrypt(access_token)
        record.expires_at = utcnow() + timedelta(seconds=expires_in)
        if refresh_token:
            record.refresh_token_encrypted = self.cipher.encrypt(refresh_token)

        self.db.commit()
        self.db.refresh(record)
        return record

    def delete(self, tenant_id: UUID, external_user_id: str, service: str) -> bool:
        """Returns False if there was nothing to delete."""
        removed = self.db.query(UserToken).filter(
            UserToken.tenant_id == tenant_id,
            UserToken.external_user_id == external_user_id,
            UserToken.service == service,
        ).delete(synchronize_session="fetch")
        self.db.commit()
        return removed > 0

    @staticmethod
    def _apply(record: UserToken, values: dict) -> None:
        for field, value in values.items():
            setattr(record, field, value)
