"""
OAuth state service - single-use state tokens for the consent round-trip.

This service manages the state parameter between BeginConnect and the
Google callback:
1. BeginConnect mints a random state bound to (tenant, end-user, service)
2. The state travels through Google's consent screen and comes back
3. The callback resolves it exactly once and learns who the grant is for

States live in the database (not in process memory) so any worker can
complete a flow started on another. Resolution deletes the row with a
conditional DELETE; of two concurrent callbacks with the same state only
the one whose DELETE removes the row proceeds.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from agentauth.core.config import Settings
from agentauth.core.exceptions import StateExpiredError, StateNotFoundError
from agentauth.core.timeutils import as_utc, utcnow
from agentauth.models.oauth_state import OAuthState


logger = logging.getLogger("agentauth.services.oauth_state")

STATE_BYTES = 32


@dataclass(frozen=True)
class ResolvedState:
    """Detached copy of a consumed state row."""
    tenant_id: UUID
    external_user_id: str
    service: str
    redirect_url: Optional[str]
    expires_at: datetime


class OAuthStateService:
    """
    Creates and consumes OAuth state tokens.

    States are:
    - 64 hex characters (256 random bits)
    - Valid for OAUTH_STATE_TTL_MINUTES (10 minutes by default)
    - One-time use (deleted when resolved, even if expired)
    """

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.ttl = timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES)

    def create(
        self,
        tenant_id: UUID,
        external_user_id: str,
        service: str,
        redirect_url: Optional[str] = None,
    ) -> tuple[str, datetime]:
        """
        Mint and store a new state token.

        Returns:
            Tuple of (state, expires_at)
        """
        self.cleanup_expired()

        state = secrets.token_hex(STATE_BYTES)
        expires_at = utcnow() + self.ttl

        self.db.add(OAuthState(
            state=state,
            tenant_id=tenant_id,
            external_user_id=external_user_id,
            service=service,
            redirect_url=redirect_url,
            expires_at=expires_at,
        ))
        self.db.commit()

        return state, expires_at

    def resolve(self, state: str) -> ResolvedState:
        """
        Consume a state token.

        The row is deleted before expiry is checked, so an expired state is
        also gone afterwards.

        Raises:
            StateNotFoundError: Unknown state, or already consumed
            StateExpiredError: State existed but its TTL had passed
        """
        record = self.db.query(OAuthState).filter(OAuthState.state == state).first()
        if not record:
            raise StateNotFoundError()

        resolved = ResolvedState(
            tenant_id=record.tenant_id,
            external_user_id=record.external_user_id,
            service=record.service,
            redirect_url=record.redirect_url,
            expires_at=as_utc(record.expires_at),
        )
        self.db.expunge(record)

        deleted = (
            self.db.query(OAuthState)
            .filter(OAuthState.id == record.id)
            .delete(synchronize_session=False)
        )
        self.db.commit()

        if deleted == 0:
            # Another callback consumed it between our read and delete
            logger.warning(f"OAuth state for tenant {resolved.tenant_id} was consumed concurrently")
            raise StateNotFoundError()

        if resolved.expires_at <= utcnow():
            raise StateExpiredError()

        return resolved

    def cleanup_expired(self) -> int:
        """
        Delete every expired state.

        Returns:
            Number of states removed
        """
        removed = (
            self.db.query(OAuthState)
            .filter(OAuthState.expires_at < utcnow())
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if removed:
            logger.info(f"Removed {removed} expired OAuth states")
        return removed
