"""
Secret cipher - AES-256-GCM encryption for secrets stored in the database.

Client secrets and access/refresh tokens are never written in plaintext.
Each value is sealed with a fresh random nonce into a text envelope:

    <nonce hex>:<auth tag hex>:<ciphertext hex>

The envelope fits in a plain text column. Hex never contains ":" so the
three parts split unambiguously whatever the plaintext holds.
"""

import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from agentauth.core.exceptions import IntegrityError


logger = logging.getLogger("agentauth.core.cipher")

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16
SEPARATOR = ":"


class SecretCipher:
    """
    Encrypts and decrypts secret strings with a fixed symmetric key.

    The key is process-wide configuration loaded once at startup. The cipher
    holds no other state, so one instance is shared by every request.

    Example:
        cipher = SecretCipher.from_hex(settings.ENCRYPTION_KEY)
        envelope = cipher.encrypt("1//0eXyz...")
        assert cipher.decrypt(envelope) == "1//0eXyz..."
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ValueError("AES-256-GCM key must be 32 bytes")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_hex(cls, hex_key: str) -> "SecretCipher":
        """
        Build a cipher from a hex-encoded key (the ENCRYPTION_KEY setting).

        Raises:
            ValueError: If the key is missing, not hex, or not 32 bytes
        """
        if not hex_key:
            raise ValueError("ENCRYPTION_KEY is not configured")
        try:
            key = bytes.fromhex(hex_key)
        except ValueError as exc:
            raise ValueError("ENCRYPTION_KEY must be hex encoded") from exc
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        """
        Seal a string into a nonce:tag:ciphertext envelope.

        Args:
            plaintext: Any string, including the empty string

        Returns:
            Hex envelope safe to store in a text column
        """
        nonce = secrets.token_bytes(NONCE_LENGTH)
        # AESGCM appends the 16-byte tag to the ciphertext
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return SEPARATOR.join((nonce.hex(), tag.hex(), ciphertext.hex()))

    def decrypt(self, envelope: str) -> str:
        """
        Open an envelope produced by ``encrypt``.

        Args:
            envelope: nonce:tag:ciphertext hex string

        Returns:
            The original plaintext

        Raises:
            IntegrityError: If the envelope is malformed, was tampered with,
                or was sealed under a different key
        """
        parts = envelope.split(SEPARATOR)
        if len(parts) != 3:
            raise IntegrityError("Encrypted value is malformed")

        try:
            nonce, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except ValueError as exc:
            raise IntegrityError("Encrypted value is malformed") from exc

        if len(tag) != TAG_LENGTH or not 8 <= len(nonce) <= 128:
            raise IntegrityError("Encrypted value is malformed")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as exc:
            logger.error("Authentication tag verification failed while decrypting a stored secret")
            raise IntegrityError() from exc

        return plaintext.decode("utf-8")
