"""
Tests for the token broker.

These tests verify:
- begin_connect validation and URL construction
- complete_connect outcomes (success and every error code)
- get_token with and without refresh
- connection_status and disconnect
"""

import asyncio
from datetime import timedelta
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agentauth.core.exceptions import (
    InvalidScopeError,
    NotConfiguredError,
    NotConnectedError,
    RefreshFailedError,
    UnsupportedServiceError,
    ValidationError,
)
from agentauth.core.timeutils import as_utc, utcnow
from agentauth.models.oauth_state import OAuthState
from agentauth.models.provider_credential import ProviderCredential
from agentauth.models.tenant import Tenant
from agentauth.models.user_token import UserToken
from agentauth.services.oauth_state import OAuthStateService
from agentauth.services.token_broker import TokenBroker

# Values configured by the settings and google_credentials fixtures
APP_URL = "https://broker.test"
CALLBACK_URL = "https://broker.test/api/oauth/callback"
GOOGLE_CLIENT_ID = "123-test.apps.googleusercontent.com"
GOOGLE_CLIENT_SECRET = "GOCSPX-test-secret"

GMAIL_SEND = "https://www.googleapis.com/auth/gmail.send"


def query_params(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def start(broker: TokenBroker, tenant: Tenant, user_id="u1", scopes=("gmail.send",), redirect_url=None) -> str:
    """Begin a connect flow and return its state token."""
    connect = broker.begin_connect(tenant.id, user_id, "google", list(scopes), redirect_url)
    return query_params(connect.connect_url)["state"]


def set_expiry(db: Session, seconds_from_now: int) -> None:
    record = db.query(UserToken).one()
    record.expires_at = utcnow() + timedelta(seconds=seconds_from_now)
    db.commit()


# ---------------------------------------------------------------------------
# BEGIN CONNECT
# ---------------------------------------------------------------------------

class TestBeginConnect:

    def test_connect_url(self, broker: TokenBroker, tenant: Tenant, google_credentials):
        connect = broker.begin_connect(tenant.id, "u1", "google", ["gmail.send", "drive.file"])
        params = query_params(connect.connect_url)

        assert connect.connect_url.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
        assert connect.expires_in == 600
        assert params["client_id"] == GOOGLE_CLIENT_ID
        assert params["redirect_uri"] == CALLBACK_URL
        assert params["scope"] == f"{GMAIL_SEND} https://www.googleapis.com/auth/drive.file"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert len(params["state"]) == 64

    def test_stores_state_binding(self, db: Session, broker: TokenBroker, tenant: Tenant, google_credentials):
        state = start(broker, tenant, user_id="user-7", redirect_url="https://app.test/back")

        record = db.query(OAuthState).filter(OAuthState.state == state).one()
        assert record.tenant_id == tenant.id
        assert record.external_user_id == "user-7"
        assert record.redirect_url == "https://app.test/back"

    def test_default_scopes(self, broker: TokenBroker, tenant: Tenant, google_credentials):
        connect = broker.begin_connect(tenant.id, "u1")
        assert query_params(connect.connect_url)["scope"] == "https://www.googleapis.com/auth/gmail.readonly"

    def test_unsupported_service(self, broker: TokenBroker, tenant: Tenant, google_credentials):
        with pytest.raises(UnsupportedServiceError) as exc_info:
            broker.begin_connect(tenant.id, "u1", "microsoft", ["gmail.send"])
        assert exc_info.value.code == "invalid_request"

    @pytest.mark.parametrize("user_id", ["", "   ", None])
    def test_blank_user_id(self, broker: TokenBroker, tenant: Tenant, google_credentials, user_id):
        with pytest.raises(ValidationError):
            broker.begin_connect(tenant.id, user_id, "google", ["gmail.send"])

    def test_empty_scope_list(self, db: Session, broker: TokenBroker, tenant: Tenant, google_credentials):
        with pytest.raises(ValidationError) as exc_info:
            broker.begin_connect(tenant.id, "u1", "google", [])

        assert exc_info.value.message == "scopes must not be empty"
        assert db.query(OAuthState).count() == 0

    def test_invalid_scopes(self, broker: TokenBroker, tenant: Tenant, google_credentials):
        with pytest.raises(InvalidScopeError) as exc_info:
            broker.begin_connect(tenant.id, "u1", "google", ["gmail.send", "youtube", "photos"])
        assert exc_info.value.unknown == ["youtube", "photos"]

    @pytest.mark.parametrize("redirect_url", ["/relative", "javascript:alert(1)", "ftp://host/x"])
    def test_bad_redirect_url(self, broker: TokenBroker, tenant: Tenant, google_credentials, redirect_url):
        with pytest.raises(ValidationError):
            broker.begin_connect(tenant.id, "u1", "google", ["gmail.send"], redirect_url)

    def test_credentials_not_configured(self, db: Session, broker: TokenBroker, tenant: Tenant):
        with pytest.raises(NotConfiguredError) as exc_info:
            broker.begin_connect(tenant.id, "u1", "google", ["gmail.send"])

        assert exc_info.value.code == "credentials_not_configured"
        assert db.query(OAuthState).count() == 0

    def test_existing_connection_survives_new_connect(
        self, db: Session, broker: TokenBroker, tenant: Tenant, google_credentials
    ):
        broker.tokens.upsert(tenant.id, "u1", "google", "A0", "R0", 3600, ["gmail.send"])

        start(broker, tenant)

        record = broker.tokens.get(tenant.id, "u1", "google")
        assert broker.tokens.decrypt_access_token(record) == "A0"


# ---------------------------------------------------------------------------
# COMPLETE CONNECT
# ---------------------------------------------------------------------------

class TestCompleteConnect:

    @pytest.mark.asyncio
    async def test_success_without_redirect(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant)
        google.queue_token("A1", "R1", 3600, GMAIL_SEND)

        outcome = await broker.complete_connect("code-1", state)

        assert outcome.success is True
        assert outcome.redirect_url == f"{APP_URL}/oauth-success?userId=u1"
        record = broker.tokens.get(tenant.id, "u1", "google")
        assert broker.tokens.decrypt_access_token(record) == "A1"
        assert broker.tokens.decrypt_refresh_token(record) == "R1"
        assert record.scopes == ["gmail.send"]
        assert google.token_requests[0]["client_secret"] == GOOGLE_CLIENT_SECRET
        assert google.token_requests[0]["redirect_uri"] == CALLBACK_URL

    @pytest.mark.asyncio
    async def test_success_with_redirect_keeps_query(self, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done?tab=2")
        google.queue_token()

        outcome = await broker.complete_connect("code", state)

        assert outcome.success is True
        assert query_params(outcome.redirect_url) == {"tab": "2", "success": "true", "userId": "u1"}
        assert outcome.redirect_url.startswith("https://app.test/done?")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code,state", [(None, "s"), ("c", None), ("", "")])
    async def test_missing_params(self, broker, code, state):
        outcome = await broker.complete_connect(code, state)

        assert outcome.success is False
        assert outcome.error_code == "missing_params"
        assert outcome.redirect_url == f"{APP_URL}/oauth-error?error=missing_params"

    @pytest.mark.asyncio
    async def test_provider_error_param(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done")

        outcome = await broker.complete_connect(None, state, error="access_denied")

        assert outcome.error_code == "access_denied"
        assert outcome.redirect_url == "https://app.test/done?error=access_denied&userId=u1"
        assert outcome.external_user_id == "u1"
        assert db.query(OAuthState).count() == 0
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_provider_error_without_redirect(self, db, broker, tenant, google_credentials):
        state = start(broker, tenant)

        outcome = await broker.complete_connect(None, state, error="access_denied")

        assert outcome.redirect_url == f"{APP_URL}/oauth-error?error=access_denied"
        assert db.query(OAuthState).count() == 0

    @pytest.mark.asyncio
    async def test_provider_error_with_unknown_state(self, broker):
        outcome = await broker.complete_connect(None, "0" * 64, error="access_denied")

        assert outcome.redirect_url == f"{APP_URL}/oauth-error?error=access_denied"
        assert outcome.external_user_id is None

    @pytest.mark.asyncio
    async def test_unknown_state(self, broker, google):
        outcome = await broker.complete_connect("code", "0" * 64)

        assert outcome.error_code == "invalid_state"
        assert outcome.redirect_url == f"{APP_URL}/oauth-error?error=invalid_state"
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_expired_state(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done")
        record = db.query(OAuthState).one()
        record.expires_at = utcnow() - timedelta(seconds=1)
        db.commit()

        outcome = await broker.complete_connect("code", state)

        assert outcome.error_code == "state_expired"
        assert outcome.redirect_url == f"{APP_URL}/oauth-error?error=state_expired"
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_replayed_state(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant)
        google.queue_token("A1", "R1")
        google.queue_token("A2", "R2")

        first = await broker.complete_connect("code", state)
        second = await broker.complete_connect("code", state)

        assert first.success is True
        assert second.error_code == "invalid_state"
        assert len(google.token_requests) == 1
        record = broker.tokens.get(tenant.id, "u1", "google")
        assert broker.tokens.decrypt_access_token(record) == "A1"

    @pytest.mark.asyncio
    async def test_concurrent_completions(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant)
        google.queue_token("A1", "R1")
        google.queue_token("A2", "R2")

        outcomes = await asyncio.gather(
            broker.complete_connect("code", state),
            broker.complete_connect("code", state),
        )

        assert sorted(o.success for o in outcomes) == [False, True]
        assert [o.error_code for o in outcomes if not o.success] == ["invalid_state"]
        assert db.query(UserToken).count() == 1

    @pytest.mark.asyncio
    async def test_state_consumed_by_another_request_mid_resolve(
        self, db, settings, broker, tenant, google_credentials, google
    ):
        """A callback that loses the delete race must not exchange or store anything."""
        state = start(broker, tenant, redirect_url="https://app.test/done")
        google.queue_token("A1", "R1")
        other_session = Session(bind=db.get_bind())
        real_expunge = db.expunge

        def consume_in_other_session(instance):
            OAuthStateService(other_session, settings).resolve(state)
            real_expunge(instance)

        try:
            with patch.object(db, "expunge", side_effect=consume_in_other_session):
                outcome = await broker.complete_connect("code", state)
        finally:
            other_session.close()

        assert outcome.success is False
        assert outcome.error_code == "invalid_state"
        assert outcome.redirect_url == f"{APP_URL}/oauth-error?error=invalid_state"
        assert google.requests == []
        assert db.query(UserToken).count() == 0
        assert db.query(OAuthState).count() == 0

    @pytest.mark.asyncio
    async def test_credentials_removed_after_connect(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done")
        db.query(ProviderCredential).delete()
        db.commit()

        outcome = await broker.complete_connect("code", state)

        assert outcome.error_code == "credentials_not_found"
        assert query_params(outcome.redirect_url) == {"error": "credentials_not_found", "userId": "u1"}
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_exchange_failure(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done")
        google.queue_error(400, "invalid_grant")

        outcome = await broker.complete_connect("bad-code", state)

        assert outcome.error_code == "token_exchange_failed"
        assert query_params(outcome.redirect_url) == {"error": "token_exchange_failed", "userId": "u1"}
        assert db.query(UserToken).count() == 0

    @pytest.mark.asyncio
    async def test_exchange_failure_without_redirect(self, broker, tenant, google_credentials, google):
        state = start(broker, tenant)
        google.queue_error(400, "invalid_grant")

        outcome = await broker.complete_connect("bad-code", state)

        assert outcome.redirect_url == f"{APP_URL}/oauth-error?error=token_exchange_failed"

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done")
        google.queue_token(refresh_token=None)

        outcome = await broker.complete_connect("code", state)

        assert outcome.error_code == "token_exchange_failed"
        assert db.query(UserToken).count() == 0

    @pytest.mark.asyncio
    async def test_storage_failure(self, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done")
        google.queue_token()

        with patch.object(broker.tokens, "upsert", side_effect=SQLAlchemyError("disk full")):
            outcome = await broker.complete_connect("code", state)

        assert outcome.error_code == "storage_failed"
        assert query_params(outcome.redirect_url)["error"] == "storage_failed"

    @pytest.mark.asyncio
    async def test_undecryptable_client_secret(self, db, broker, tenant, google_credentials, google):
        state = start(broker, tenant, redirect_url="https://app.test/done")
        google_credentials.client_secret_encrypted = "00:11:22"
        db.commit()

        outcome = await broker.complete_connect("code", state)

        assert outcome.error_code == "internal_error"
        assert google.requests == []


# ---------------------------------------------------------------------------
# GET TOKEN
# ---------------------------------------------------------------------------

class TestGetToken:

    @pytest.fixture
    def connected(self, broker: TokenBroker, tenant: Tenant, google_credentials):
        return broker.tokens.upsert(tenant.id, "u1", "google", "A1", "R1", 3600, ["gmail.send"])

    @pytest.mark.asyncio
    async def test_fresh_token_makes_no_provider_call(self, broker, tenant, connected, google):
        token = await broker.get_token(tenant.id, "u1", "google")

        assert token.access_token == "A1"
        assert token.scopes == ["gmail.send"]
        assert token.expires_at == as_utc(connected.expires_at)
        assert google.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seconds_left", [299, 60, -600])
    async def test_refreshes_within_buffer(self, db, broker, tenant, connected, google, seconds_left):
        set_expiry(db, seconds_left)
        refresh_before = connected.refresh_token_encrypted
        google.queue_token("A2", refresh_token=None, expires_in=3599)

        token = await broker.get_token(tenant.id, "u1", "google")

        assert token.access_token == "A2"
        assert token.scopes == ["gmail.send"]
        assert token.expires_at > utcnow() + timedelta(seconds=3500)
        record = broker.tokens.get(tenant.id, "u1", "google")
        assert broker.tokens.decrypt_access_token(record) == "A2"
        assert record.refresh_token_encrypted == refresh_before
        assert google.token_requests[0]["refresh_token"] == "R1"
        assert google.token_requests[0]["client_id"] == GOOGLE_CLIENT_ID

    @pytest.mark.asyncio
    async def test_just_outside_buffer_is_not_refreshed(self, db, broker, tenant, connected, google):
        set_expiry(db, 330)

        token = await broker.get_token(tenant.id, "u1", "google")

        assert token.access_token == "A1"
        assert google.requests == []

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_is_stored(self, db, broker, tenant, connected, google):
        set_expiry(db, 10)
        google.queue_token("A2", refresh_token="R2")

        await broker.get_token(tenant.id, "u1", "google")

        record = broker.tokens.get(tenant.id, "u1", "google")
        assert broker.tokens.decrypt_refresh_token(record) == "R2"

    @pytest.mark.asyncio
    async def test_refresh_failure_leaves_record_untouched(self, db, broker, tenant, connected, google):
        set_expiry(db, 10)
        record = db.query(UserToken).one()
        db.refresh(record)
        snapshot = (record.access_token_encrypted, record.refresh_token_encrypted, record.expires_at)
        google.queue_error(400, "invalid_grant", "Token has been expired or revoked.")

        with pytest.raises(RefreshFailedError) as exc_info:
            await broker.get_token(tenant.id, "u1", "google")

        assert exc_info.value.code == "refresh_failed"
        db.refresh(record)
        assert (record.access_token_encrypted, record.refresh_token_encrypted, record.expires_at) == snapshot

    @pytest.mark.asyncio
    async def test_refresh_without_credentials(self, db, broker, tenant, connected, google):
        set_expiry(db, 10)
        db.query(ProviderCredential).delete()
        db.commit()

        with pytest.raises(NotConfiguredError):
            await broker.get_token(tenant.id, "u1", "google")

    @pytest.mark.asyncio
    async def test_not_connected(self, broker, tenant):
        with pytest.raises(NotConnectedError):
            await broker.get_token(tenant.id, "stranger", "google")

    @pytest.mark.asyncio
    async def test_missing_user_id(self, broker, tenant):
        with pytest.raises(ValidationError):
            await broker.get_token(tenant.id, None, "google")

    @pytest.mark.asyncio
    async def test_unsupported_service(self, broker, tenant):
        with pytest.raises(UnsupportedServiceError):
            await broker.get_token(tenant.id, "u1", "dropbox")


# ---------------------------------------------------------------------------
# CONNECTION MANAGEMENT
# ---------------------------------------------------------------------------

class TestConnections:

    def test_status_not_connected(self, broker, tenant):
        status = broker.connection_status(tenant.id, "u1", "google")

        assert status.connected is False
        assert status.scopes == []
        assert status.expires_at is None

    def test_status_connected(self, db, broker, tenant):
        broker.tokens.upsert(tenant.id, "u1", "google", "A1", "R1", 3600, ["gmail.send"])

        status = broker.connection_status(tenant.id, "u1", "google")

        assert status.connected is True
        assert status.scopes == ["gmail.send"]
        assert status.is_expired is False

        set_expiry(db, 100)
        assert broker.connection_status(tenant.id, "u1", "google").is_expired is True

    @pytest.mark.asyncio
    async def test_disconnect_revokes_and_deletes(self, db, broker, tenant, google):
        broker.tokens.upsert(tenant.id, "u1", "google", "A1", "R1", 3600, [])

        await broker.disconnect(tenant.id, "u1", "google")

        assert db.query(UserToken).count() == 0
        assert google.revoke_requests[0].url.params["token"] == "R1"

    @pytest.mark.asyncio
    async def test_disconnect_when_revoke_fails(self, db, broker, tenant, google):
        broker.tokens.upsert(tenant.id, "u1", "google", "A1", "R1", 3600, [])
        google.revoke_status = 400

        await broker.disconnect(tenant.id, "u1", "google")

        assert db.query(UserToken).count() == 0

    @pytest.mark.asyncio
    async def test_disconnect_unknown_user(self, broker, tenant):
        with pytest.raises(NotConnectedError):
            await broker.disconnect(tenant.id, "nobody", "google")
