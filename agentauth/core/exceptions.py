"""
Broker exceptions - one taxonomy for every failure the broker can report.

Each exception carries:
- code: Stable machine-readable identifier returned to tenants ("error" field)
- status_code: HTTP status used when the exception reaches a JSON endpoint
- message: Human-readable explanation ("message" field)

Expected outcomes (bad API key, bad input, missing credentials, user not
connected) are surfaced verbatim. IntegrityError and InternalError are logged
server-side and reported as a generic internal error.
"""

from typing import Iterable, Optional


class BrokerError(Exception):
    """Base exception for all broker errors."""

    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# CALLER ERRORS
# ---------------------------------------------------------------------------


class AuthenticationError(BrokerError):
    """Unknown, malformed or inactive API key."""

    code = "invalid_api_key"
    status_code = 401
    default_message = "The API key provided is invalid or inactive."


class SessionAuthenticationError(AuthenticationError):
    """Missing or invalid dashboard session token."""

    code = "unauthorized"
    default_message = "You must be logged in."


class ValidationError(BrokerError):
    """Malformed request input."""

    code = "invalid_request"
    status_code = 400
    default_message = "The request is invalid."


class UnsupportedServiceError(ValidationError):
    """Requested service is not one the broker can connect to."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"Unsupported service '{service}'. Only google service is supported currently")


class InvalidScopeError(ValidationError):
    """One or more requested scope names have no provider mapping."""

    def __init__(self, unknown: Iterable[str]):
        self.unknown = list(unknown)
        super().__init__(f"Invalid scopes: {', '.join(self.unknown)}")


class NotConfiguredError(BrokerError):
    """Tenant has not saved their Google OAuth client credentials yet."""

    code = "credentials_not_configured"
    status_code = 400
    default_message = "Google OAuth credentials not configured. Visit dashboard to add them."


class NotConnectedError(BrokerError):
    """No token record exists for the (tenant, user, service) triple."""

    code = "user_not_connected"
    status_code = 404
    default_message = (
        "This user has not connected their Google account. Generate a connect URL first."
    )


class NotFoundError(BrokerError):
    """Resource is absent or owned by another tenant (never distinguished)."""

    code = "not_found"
    status_code = 404
    default_message = "Resource not found."


class ConflictError(BrokerError):
    code = "already_exists"
    status_code = 409
    default_message = "Resource already exists."


# ---------------------------------------------------------------------------
# OAUTH STATE ERRORS
# ---------------------------------------------------------------------------


class StateError(BrokerError):
    """State token could not be resolved."""

    code = "invalid_state"
    status_code = 400
    default_message = "Invalid or expired state. Please try again."


class StateNotFoundError(StateError):
    """State token is unknown or was already consumed."""

    code = "invalid_state"


class StateExpiredError(StateError):
    code = "state_expired"
    default_message = "The authorization request expired. Please try again."


# ---------------------------------------------------------------------------
# PROVIDER ERRORS
# ---------------------------------------------------------------------------


class ProviderError(BrokerError):
    """Google rejected a token request, or the request did not complete."""

    code = "provider_error"
    status_code = 400
    default_message = "The identity provider rejected the request."

    def __init__(self, provider_message: str = "", message: Optional[str] = None):
        self.provider_message = provider_message
        super().__init__(message)


class ExchangeFailedError(ProviderError):
    code = "token_exchange_failed"
    default_message = "Failed to exchange the authorization code for tokens."


class RefreshFailedError(ProviderError):
    """Refresh token rejected; the end-user must reconnect."""

    code = "refresh_failed"
    default_message = "Failed to refresh token. User may need to reconnect."


# ---------------------------------------------------------------------------
# SERVER ERRORS
# ---------------------------------------------------------------------------


class IntegrityError(BrokerError):
    """Ciphertext failed authentication (tampered data or wrong key)."""

    code = "internal_error"
    status_code = 500
    default_message = "Stored secret failed integrity verification."


class InternalError(BrokerError):
    code = "internal_error"
    status_code = 500
