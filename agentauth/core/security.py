"""
Security utilities - dashboard passwords, session JWTs and API key material.

Two different secrets pass through here:
- Dashboard passwords: bcrypt hashed (slow, salted, verify-only)
- API keys: SHA-256 hashed (fast and deterministic so a presented key can be
  looked up by its hash; the key itself is 192 bits of randomness)
"""

import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from agentauth.core.config import Settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# ---------------------------------------------------------------------------
# API KEY FORMAT
# ---------------------------------------------------------------------------
# aa_live_ + 32 url-safe characters (24 random bytes, base64url encoded)
# The prefix marks the format version and is safe to display.
API_KEY_PREFIX = "aa_live_"
API_KEY_RANDOM_BYTES = 24
API_KEY_PATTERN = re.compile(r"^aa_live_[A-Za-z0-9_-]{32}$")


def hash_password(password: str) -> str:
    """Hash a dashboard password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a dashboard password against its stored bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    subject: str,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed dashboard session token.

    Args:
        subject: Tenant ID stored in the "sub" claim
        settings: Supplies SECRET_KEY, ALGORITHM and the default lifetime
        expires_delta: Optional custom lifetime

    Returns:
        Signed JWT string
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": subject, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new API key.

    Returns:
        Tuple of (full_key, prefix, sha256_hash). Only the prefix and hash are
        ever persisted; the full key is shown to the tenant once.
    """
    key = API_KEY_PREFIX + secrets.token_urlsafe(API_KEY_RANDOM_BYTES)
    return key, API_KEY_PREFIX, hash_api_key(key)


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def is_valid_api_key_format(key: str) -> bool:
    """Cheap shape check run before any database lookup."""
    return bool(API_KEY_PATTERN.match(key))


def mask_api_key(key: str) -> str:
    """Show the first 12 and last 4 characters: aa_live_xxxx••••...xxxx."""
    if len(key) <= 16:
        return key
    return f"{key[:12]}{'•' * 20}{key[-4:]}"
