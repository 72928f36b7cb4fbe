"""
Token broker - orchestrates connecting end-users and handing out tokens.

Connection lifecycle for one (tenant, end-user, service):

    Unconnected -> PendingConsent -> Connected -> (refreshing) -> Connected
                                                              `-> reconnect required

1. begin_connect(): tenant backend asks for a consent URL (PendingConsent)
2. complete_connect(): Google calls back; code is exchanged and stored
3. get_token(): tenant backend reads a valid access token, refreshed
   through Google when it is within the refresh buffer of expiry
4. connection_status() / disconnect(): inspect or drop a connection

The callback is driven by a browser, not by the tenant's backend, so
complete_connect() never raises for expected failures. It returns a
ConnectOutcome saying where to send the browser.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from uuid import UUID

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agentauth.core.cipher import SecretCipher
from agentauth.core.config import Settings
from agentauth.core.exceptions import (
    ExchangeFailedError,
    IntegrityError,
    StateExpiredError,
    StateNotFoundError,
    ValidationError,
)
from agentauth.core.timeutils import as_utc, utcnow
from agentauth.environments.base import OAuthProviderClient, SupportedService, get_provider_client
from agentauth.environments.google.auth.schemas import DEFAULT_SCOPES
from agentauth.services.oauth_state import OAuthStateService, ResolvedState
from agentauth.services.provider_credentials import ProviderCredentialService
from agentauth.services.scopes import ScopeRegistry, scope_registry
from agentauth.services.token_store import TokenStore


logger = logging.getLogger("agentauth.services.token_broker")


# ---------------------------------------------------------------------------
# CALLBACK ERROR CODES
# ---------------------------------------------------------------------------
# Sent to the browser as ?error=<code>
MISSING_PARAMS = "missing_params"
INVALID_STATE = "invalid_state"
STATE_EXPIRED = "state_expired"
CREDENTIALS_NOT_FOUND = "credentials_not_found"
TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
STORAGE_FAILED = "storage_failed"
INTERNAL_ERROR = "internal_error"


# ---------------------------------------------------------------------------
# RESULT TYPES
# ---------------------------------------------------------------------------


@dataclass
class ConnectUrl:
    connect_url: str
    expires_in: int


@dataclass
class ConnectOutcome:
    """Where the callback should send the browser, and why."""
    success: bool
    redirect_url: str
    error_code: Optional[str] = None
    external_user_id: Optional[str] = None


@dataclass
class AccessToken:
    access_token: str
    expires_at: datetime
    scopes: List[str] = field(default_factory=list)


@dataclass
class ConnectionStatus:
    connected: bool
    scopes: List[str] = field(default_factory=list)
    expires_at: Optional[datetime] = None
    is_expired: Optional[bool] = None


# ---------------------------------------------------------------------------
# BROKER
# ---------------------------------------------------------------------------


class TokenBroker:
    """
    Request-scoped orchestrator over the state, credential and token stores.

    Example:
        broker = TokenBroker(db, settings, cipher)

        connect = broker.begin_connect(tenant_id, "u1", "google", ["gmail.send"])
        # send the end-user to connect.connect_url

        outcome = await broker.complete_connect(code, state)
        # redirect the browser to outcome.redirect_url

        token = await broker.get_token(tenant_id, "u1", "google")
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        cipher: SecretCipher,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        scopes: ScopeRegistry = scope_registry,
    ):
        self.db = db
        self.settings = settings
        self.states = OAuthStateService(db, settings)
        self.credentials = ProviderCredentialService(db, cipher, settings)
        self.tokens = TokenStore(db, cipher)
        self.scopes = scopes
        self.callback_url = settings.GOOGLE_OAUTH_CALLBACK_URL
        self.refresh_buffer = timedelta(seconds=settings.TOKEN_REFRESH_BUFFER_SECONDS)
        self._transport = transport

    def provider_for(self, service: SupportedService) -> OAuthProviderClient:
        return get_provider_client(service, self.settings, transport=self._transport)

    # -------------------------------------------------------------------------
    # BEGIN CONNECT
    # -------------------------------------------------------------------------

    def begin_connect(
        self,
        tenant_id: UUID,
        external_user_id: str,
        service: str = SupportedService.GOOGLE.value,
        scope_names: Optional[List[str]] = None,
        redirect_url: Optional[str] = None,
    ) -> ConnectUrl:
        """
        Create a consent URL for an end-user.

        Any existing connection for the same end-user stays usable until a
        new consent completes and overwrites it.

        Args:
            tenant_id: Tenant resolved from the API key
            external_user_id: Tenant's identifier for the end-user
            service: Must be "google"
            scope_names: Canonical scope names (defaults to gmail.readonly)
            redirect_url: Where to send the end-user after the callback

        Returns:
            ConnectUrl with the Google consent URL and its lifetime in seconds

        Raises:
            UnsupportedServiceError: service is not supported
            ValidationError: Blank user id, empty scope list or bad redirect URL
            InvalidScopeError: Unknown scope names
            NotConfiguredError: Tenant has no Google OAuth credentials
        """
        supported = SupportedService.parse(service)
        _require_user_id(external_user_id)

        if scope_names is None:
            scope_names = DEFAULT_SCOPES
        elif not scope_names:
            raise ValidationError("scopes must not be empty")
        provider_scopes = self.scopes.resolve(scope_names)

        if redirect_url is not None and not _is_absolute_http_url(redirect_url):
            raise ValidationError("redirectUrl must be an absolute http(s) URL")

        credential = self.credentials.require(tenant_id)

        state, _ = self.states.create(
            tenant_id=tenant_id,
            external_user_id=external_user_id,
            service=supported.value,
            redirect_url=redirect_url,
        )

        connect_url = self.provider_for(supported).build_authorization_url(
            client_id=credential.client_id,
            redirect_uri=self.callback_url,
            scopes=provider_scopes,
            state=state,
        )

        logger.info(
            f"Generated connect URL for tenant {tenant_id}, user '{external_user_id}', "
            f"{len(provider_scopes)} scopes"
        )
        return ConnectUrl(connect_url=connect_url, expires_in=self.settings.state_ttl_seconds)

    # -------------------------------------------------------------------------
    # COMPLETE CONNECT (callback)
    # -------------------------------------------------------------------------

    async def complete_connect(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> ConnectOutcome:
        """
        Finish a consent round-trip.

        The state is consumed before any network call, so a replayed
        callback can never trigger a second exchange.

        Returns:
            ConnectOutcome; never raises
        """
        if error:
            logger.warning(f"Google returned OAuth error: {error}")
            resolved = self._discard_state(state) if state else None
            if resolved:
                return self._tenant_error(resolved, error)
            return self._generic_error(error)

        if not code or not state:
            return self._generic_error(MISSING_PARAMS)

        try:
            resolved = self.states.resolve(state)
        except StateExpiredError:
            logger.info("OAuth callback with an expired state")
            return self._generic_error(STATE_EXPIRED)
        except StateNotFoundError:
            logger.info("OAuth callback with an unknown or consumed state")
            return self._generic_error(INVALID_STATE)

        try:
            return await self._finish_connect(resolved, code)
        except Exception:
            logger.exception(
                f"Unexpected error completing OAuth for tenant {resolved.tenant_id}, "
                f"user '{resolved.external_user_id}'"
            )
            return self._tenant_error(resolved, INTERNAL_ERROR)

    async def _finish_connect(self, resolved: ResolvedState, code: str) -> ConnectOutcome:
        credential = self.credentials.get(resolved.tenant_id)
        if not credential:
            logger.warning(f"Tenant {resolved.tenant_id} has no Google credentials at callback time")
            return self._tenant_error(resolved, CREDENTIALS_NOT_FOUND)

        try:
            client_secret = self.credentials.decrypt_secret(credential)
        except IntegrityError:
            logger.error(
                f"Could not decrypt client secret of tenant {resolved.tenant_id}",
                exc_info=True,
            )
            return self._tenant_error(resolved, INTERNAL_ERROR)

        provider = self.provider_for(SupportedService.parse(resolved.service))
        try:
            grant = await provider.exchange_code(
                code=code,
                client_id=credential.client_id,
                client_secret=client_secret,
                redirect_uri=self.callback_url,
            )
        except ExchangeFailedError as e:
            logger.warning(
                f"Token exchange failed for tenant {resolved.tenant_id}, "
                f"user '{resolved.external_user_id}': {e.provider_message}"
            )
            return self._tenant_error(resolved, TOKEN_EXCHANGE_FAILED)

        if not grant.refresh_token:
            logger.warning(
                f"Google issued no refresh token for tenant {resolved.tenant_id}, "
                f"user '{resolved.external_user_id}'"
            )
            return self._tenant_error(resolved, TOKEN_EXCHANGE_FAILED)

        # No awaits past this point
        try:
            self.tokens.upsert(
                tenant_id=resolved.tenant_id,
                external_user_id=resolved.external_user_id,
                service=resolved.service,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_in=grant.expires_in,
                scopes=self.scopes.parse_granted(grant.scope),
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(
                f"Failed to store tokens for tenant {resolved.tenant_id}, "
                f"user '{resolved.external_user_id}'",
                exc_info=True,
            )
            return self._tenant_error(resolved, STORAGE_FAILED)

        logger.info(f"Connected user '{resolved.external_user_id}' for tenant {resolved.tenant_id}")

        if resolved.redirect_url:
            target = _with_query(
                resolved.redirect_url,
                {"success": "true", "userId": resolved.external_user_id},
            )
        else:
            target = self._app_page("/oauth-success", {"userId": resolved.external_user_id})

        return ConnectOutcome(
            success=True,
            redirect_url=target,
            external_user_id=resolved.external_user_id,
        )

    # -------------------------------------------------------------------------
    # GET TOKEN
    # -------------------------------------------------------------------------

    async def get_token(
        self,
        tenant_id: UUID,
        external_user_id: str,
        service: str = SupportedService.GOOGLE.value,
    ) -> AccessToken:
        """
        Return a valid access token, refreshing it first if needed.

        Raises:
            ValidationError: Missing user id
            UnsupportedServiceError: service is not supported
            NotConnectedError: No stored tokens for the user
            NotConfiguredError: Refresh needed but credentials were removed
            RefreshFailedError: Google rejected the refresh; user must reconnect
            IntegrityError: Stored secrets could not be decrypted
        """
        _require_user_id(external_user_id)
        supported = SupportedService.parse(service)

        record = self.tokens.get(tenant_id, external_user_id, supported.value)
        expires_at = as_utc(record.expires_at)

        if not self._needs_refresh(expires_at):
            return AccessToken(
                access_token=self.tokens.decrypt_access_token(record),
                expires_at=expires_at,
                scopes=list(record.scopes or []),
            )

        logger.info(f"Refreshing token for tenant {tenant_id}, user '{external_user_id}'")

        credential = self.credentials.require(tenant_id)
        client_secret = self.credentials.decrypt_secret(credential)
        refresh_token = self.tokens.decrypt_refresh_token(record)
        record_id = record.id

        # RefreshFailedError propagates with the record untouched
        refreshed = await self.provider_for(supported).refresh(
            refresh_token=refresh_token,
            client_id=credential.client_id,
            client_secret=client_secret,
        )

        updated = self.tokens.update_access_token(
            record_id,
            access_token=refreshed.access_token,
            expires_in=refreshed.expires_in,
            refresh_token=refreshed.refresh_token,
        )

        return AccessToken(
            access_token=refreshed.access_token,
            expires_at=as_utc(updated.expires_at),
            scopes=list(updated.scopes or []),
        )

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    def connection_status(
        self,
        tenant_id: UUID,
        external_user_id: str,
        service: str = SupportedService.GOOGLE.value,
    ) -> ConnectionStatus:
        """Describe a connection without decrypting anything."""
        _require_user_id(external_user_id)
        supported = SupportedService.parse(service)

        record = self.tokens.find(tenant_id, external_user_id, supported.value)
        if not record:
            return ConnectionStatus(connected=False)

        expires_at = as_utc(record.expires_at)
        return ConnectionStatus(
            connected=True,
            scopes=list(record.scopes or []),
            expires_at=expires_at,
            is_expired=self._needs_refresh(expires_at),
        )

    async def disconnect(
        self,
        tenant_id: UUID,
        external_user_id: str,
        service: str = SupportedService.GOOGLE.value,
    ) -> None:
        """
        Revoke the grant at Google (best effort) and delete the stored tokens.

        Raises:
            NotConnectedError: Nothing stored for the user
        """
        _require_user_id(external_user_id)
        supported = SupportedService.parse(service)

        record = self.tokens.get(tenant_id, external_user_id, supported.value)

        try:
            refresh_token = self.tokens.decrypt_refresh_token(record)
        except IntegrityError:
            logger.warning(
                f"Skipping revocation for tenant {tenant_id}, user '{external_user_id}': "
                "stored refresh token is unreadable"
            )
            refresh_token = None

        if refresh_token:
            revoked = await self.provider_for(supported).revoke_token(refresh_token)
            if not revoked:
                logger.warning(f"Google did not confirm revocation for user '{external_user_id}'")

        self.tokens.delete(tenant_id, external_user_id, supported.value)
        logger.info(f"Disconnected user '{external_user_id}' for tenant {tenant_id}")

    # -------------------------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------------------------

    def _needs_refresh(self, expires_at: datetime) -> bool:
        return utcnow() + self.refresh_buffer >= expires_at

    def _discard_state(self, state: str) -> Optional[ResolvedState]:
        try:
            return self.states.resolve(state)
        except (StateNotFoundError, StateExpiredError) as e:
            logger.debug(f"State on an OAuth error callback was not usable: {e.code}")
            return None

    def _app_page(self, path: str, params: dict) -> str:
        return f"{self.settings.APP_URL.rstrip('/')}{path}?{urlencode(params)}"

    def _generic_error(self, error_code: str) -> ConnectOutcome:
        return ConnectOutcome(
            success=False,
            redirect_url=self._app_page("/oauth-error", {"error": error_code}),
            error_code=error_code,
        )

    def _tenant_error(self, resolved: ResolvedState, error_code: str) -> ConnectOutcome:
        if resolved.redirect_url:
            target = _with_query(
                resolved.redirect_url,
                {"error": error_code, "userId": resolved.external_user_id},
            )
        else:
            target = self._app_page("/oauth-error", {"error": error_code})

        return ConnectOutcome(
            success=False,
            redirect_url=target,
            error_code=error_code,
            external_user_id=resolved.external_user_id,
        )


def _require_user_id(external_user_id: Optional[str]) -> None:
    if not external_user_id or not external_user_id.strip():
        raise ValidationError("userId is required")


def _is_absolute_http_url(url: str) -> bool:
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _with_query(url: str, params: dict) -> str:
    """Set query parameters on a URL, keeping the ones already there."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))
