"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Test database (SQLite in-memory for speed)
- Test settings and cipher
- A stub Google token endpoint (httpx.MockTransport)
- Test client (FastAPI TestClient) wired to all of the above
- Tenant, API key and session helpers
"""

import os

# Must be set before agentauth modules build the global settings/engine
TEST_ENCRYPTION_KEY = "0f" * 32
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY

from typing import Generator, Optional
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import agentauth.models  # noqa: F401  (registers tables on Base.metadata)
from agentauth.core.cipher import SecretCipher
from agentauth.core.config import Settings, get_settings
from agentauth.core.security import create_access_token
from agentauth.db.base import Base
from agentauth.db.session import get_db
from agentauth.deps import get_provider_transport
from agentauth.main import app
from agentauth.models.tenant import Tenant
from agentauth.services.provider_credentials import ProviderCredentialService
from agentauth.services.provisioning import ProvisioningService
from agentauth.services.token_broker import TokenBroker


# ---------------------------------------------------------------------------
# TEST DATABASE SETUP
# ---------------------------------------------------------------------------
# StaticPool keeps the same connection across all operations

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},  # Required for SQLite
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)

GOOGLE_CLIENT_ID = "123-test.apps.googleusercontent.com"
GOOGLE_CLIENT_SECRET = "GOCSPX-test-secret"
CALLBACK_URL = "https://broker.test/api/oauth/callback"
APP_URL = "https://broker.test"


# ---------------------------------------------------------------------------
# GOOGLE STUB
# ---------------------------------------------------------------------------

class GoogleStub:
    """
    Fake Google token/revoke endpoints behind an httpx.MockTransport.

    Queue token endpoint answers with queue_token()/queue_error()/queue_exception();
    every request is recorded. An empty queue answers 500.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._token_answers: list = []
        self.revoke_status = 200
        self.transport = httpx.MockTransport(self._handle)

    def queue_token(
        self,
        access_token: str = "ya29.access",
        refresh_token: Optional[str] = "1//refresh",
        expires_in: Optional[int] = 3600,
        scope: str = "https://www.googleapis.com/auth/gmail.readonly",
    ) -> None:
        body = {"access_token": access_token, "token_type": "Bearer", "scope": scope}
        if refresh_token is not None:
            body["refresh_token"] = refresh_token
        if expires_in is not None:
            body["expires_in"] = expires_in
        self._token_answers.append(httpx.Response(200, json=body))

    def queue_error(self, status_code: int = 400, error: str = "invalid_grant",
                    description: str = "Bad Request") -> None:
        self._token_answers.append(
            httpx.Response(status_code, json={"error": error, "error_description": description})
        )

    def queue_exception(self, exc: Exception) -> None:
        self._token_answers.append(exc)

    def queue_response(self, response: httpx.Response) -> None:
        self._token_answers.append(response)

    @property
    def token_requests(self) -> list[dict]:
        """Form bodies posted to the token endpoint."""
        return [
            {k: v[0] for k, v in parse_qs(r.content.decode()).items()}
            for r in self.requests
            if r.url.path == "/token"
        ]

    @property
    def revoke_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/revoke"]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/revoke":
            return httpx.Response(self.revoke_status)
        if not self._token_answers:
            return httpx.Response(500, text="no stubbed answer")
        answer = self._token_answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


# ---------------------------------------------------------------------------
# CORE FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        ENCRYPTION_KEY=TEST_ENCRYPTION_KEY,
        SECRET_KEY="test-secret-key",
        APP_URL=APP_URL,
        GOOGLE_OAUTH_CALLBACK_URL=CALLBACK_URL,
    )


@pytest.fixture
def cipher() -> SecretCipher:
    return SecretCipher.from_hex(TEST_ENCRYPTION_KEY)


@pytest.fixture
def google() -> GoogleStub:
    return GoogleStub()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Create a fresh database for each test function.

    - Creates all tables
    - Yields a session for the test
    - Drops all tables after test (clean slate)
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def broker(db: Session, settings: Settings, cipher: SecretCipher, google: GoogleStub) -> TokenBroker:
    return TokenBroker(db, settings, cipher, transport=google.transport)


@pytest.fixture(scope="function")
def client(db: Session, settings: Settings, google: GoogleStub) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database, settings and Google stub.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_provider_transport] = lambda: google.transport

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# TENANT FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def provisioned(db: Session) -> tuple[Tenant, str]:
    """A tenant with password "testpassword" and its Default API key."""
    return ProvisioningService(db).provision_tenant(
        email="dev@example.com",
        password="testpassword",
        display_name="Test Dev",
    )


@pytest.fixture
def tenant(provisioned) -> Tenant:
    return provisioned[0]


@pytest.fixture
def api_key(provisioned) -> str:
    return provisioned[1]


@pytest.fixture
def api_headers(api_key: str) -> dict:
    return {"Authorization": f"Bearer {api_key}"}


@pytest.fixture
def auth_headers(tenant: Tenant, settings: Settings) -> dict:
    """Dashboard session headers for the test tenant."""
    token = create_access_token(subject=str(tenant.id), settings=settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def google_credentials(db: Session, tenant: Tenant, cipher: SecretCipher, settings: Settings):
    """Saved Google OAuth client for the test tenant."""
    return ProviderCredentialService(db, cipher, settings).save(
        tenant.id, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
    )
