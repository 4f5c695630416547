"""Encryption of user-supplied provider keys.

Secrets are sealed with AES-256-GCM under a key derived from the server
secret with PBKDF2-HMAC-SHA512 and a fresh random salt per secret. Stored
blobs have the form ``salt:nonce:tag:ciphertext``, each part base64.
"""
import base64
import binascii
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import ConfigurationError, DecryptionError

logger = logging.getLogger(__name__)

SALT_LENGTH = 64
NONCE_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32
DEFAULT_ITERATIONS = 100_000

PLACEHOLDER_KEYS = (
    "your-api-key",
    "your_api_key",
    "example",
    "test-key",
    "placeholder",
)


def mask(secret: Optional[str], visible: int = 4) -> str:
    """Masked form of a secret for display, e.g. "gsk_...wxyz".

    Secrets of 2 * visible characters or fewer are fully starred.
    """
    if not secret:
        return ""
    if len(secret) <= visible * 2:
        return "*" * len(secret)
    return f"{secret[:visible]}...{secret[-visible:]}"


def validate_format(secret: Optional[str]) -> Optional[str]:
    """Check that a key looks real before it is stored.

    Returns:
        None if the key is acceptable, otherwise the reason it is not
    """
    if not secret or not secret.strip():
        return "API key is empty"
    if len(secret.strip()) < 10:
        return "API key is too short"
    lowered = secret.lower()
    for placeholder in PLACEHOLDER_KEYS:
        if placeholder in lowered:
            return "API key looks like a placeholder"
    return None


class CredentialVault:
    """Encrypts and decrypts secrets with a server-side secret.

    Args:
        secret: Server secret (ENCRYPTION_SECRET_KEY)
        iterations: PBKDF2 iterations

    Raises:
        ConfigurationError: If the secret is missing
    """

    def __init__(self, secret: Optional[str], iterations: int = DEFAULT_ITERATIONS):
        if not secret:
            raise ConfigurationError("ENCRYPTION_SECRET_KEY not configured")
        self._secret = secret.encode("utf-8")
        self.iterations = iterations

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(self._secret)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a secret.

        Returns:
            Blob "salt:nonce:tag:ciphertext", each part base64
        """
        salt = os.urandom(SALT_LENGTH)
        nonce = os.urandom(NONCE_LENGTH)
        sealed = AESGCM(self._derive_key(salt)).encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        return ":".join(
            base64.b64encode(part).decode("ascii")
            for part in (salt, nonce, tag, ciphertext)
        )

    def decrypt(self, blob: str) -> str:
        """Decrypt a blob produced by encrypt().

        Raises:
            DecryptionError: If the blob is malformed, was tampered with, or
                was sealed under a different secret
        """
        parts = (blob or "").split(":")
        if len(parts) != 4:
            raise DecryptionError("Invalid encrypted data format")

        try:
            salt, nonce, tag, ciphertext = (base64.b64decode(p, validate=True) for p in parts)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Invalid encrypted data encoding") from e

        if len(salt) != SALT_LENGTH or len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise DecryptionError("Invalid encrypted data format")

        try:
            plaintext = AESGCM(self._derive_key(salt)).decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptionError("Failed to decrypt data") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted data is not valid text") from e

    def mask(self, secret: str, visible: int = 4) -> str:
        return mask(secret, visible)

    def validate_format(self, secret: str) -> Optional[str]:
        return validate_format(secret)
