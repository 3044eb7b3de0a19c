"""Symmetric encryption for secrets stored in the database.

Broadcast credentials are stored encrypted with Fernet, which provides:
- AES-128-CBC encryption
- HMAC-SHA256 authentication
- Automatic IV generation
"""

import base64
import hashlib
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from livecast.core.config import settings

FERNET_TOKEN_PREFIX = "gAAAAA"


def _derive_key(key: str) -> bytes:
    """Derive a Fernet-compatible key from the configuration key.

    Args:
        key: The raw encryption key string

    Returns:
        bytes: A 32-byte URL-safe base64-encoded key for Fernet
    """
    # Use SHA-256 to derive a consistent 32-byte key
    key_bytes = hashlib.sha256(key.encode()).digest()
    return base64.urlsafe_b64encode(key_bytes)


@lru_cache(maxsize=1)
def get_fernet() -> Fernet:
    """Get a Fernet instance with the configured encryption key."""
    return Fernet(_derive_key(settings.ENCRYPTION_KEY))


def encrypt_token(plaintext: str) -> str:
    """Encrypt a secret.

    Args:
        plaintext: The plain text value to encrypt

    Returns:
        str: Fernet token

    Raises:
        ValueError: If plaintext is empty
    """
    if not plaintext:
        raise ValueError("Cannot encrypt empty token")
    return get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: str) -> Optional[str]:
    """Decrypt a Fernet token.

    Args:
        ciphertext: The encrypted token string

    Returns:
        Optional[str]: Decrypted value or None if decryption fails
    """
    if not ciphertext:
        return None
    try:
        return get_fernet().decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        return None


def is_encrypted(value: str) -> bool:
    """Check if a value appears to be encrypted (Fernet format)."""
    return bool(value) and value.startswith(FERNET_TOKEN_PREFIX)
