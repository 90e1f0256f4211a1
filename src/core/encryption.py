"""
Encryption utilities for Xero tokens stored in the database.

AES-256-GCM with a random nonce prepended to the ciphertext, base64 encoded
for storage in a TEXT column.
"""

import os
from base64 import b64decode, b64encode

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core import config

NONCE_SIZE = 12


def _get_encryption_key() -> bytes:
    """
    Get the encryption key from configuration.

    Raises:
        ValueError: If ENCRYPTION_KEY is not set or not a base64 32-byte key
    """
    key_b64 = config.ENCRYPTION_KEY
    if not key_b64:
        raise ValueError(
            "ENCRYPTION_KEY not set. Generate with: python -c 'import os, base64; "
            "print(base64.b64encode(os.urandom(32)).decode())'"
        )

    try:
        key = b64decode(key_b64, validate=True)
    except ValueError as e:
        raise ValueError(f"Invalid ENCRYPTION_KEY format: {e}") from e

    if len(key) != 32:
        raise ValueError(f"ENCRYPTION_KEY must be 32 bytes, got {len(key)}")
    return key


def encrypt_token(token: str) -> str:
    """Encrypt a token for storage."""
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(_get_encryption_key()).encrypt(nonce, token.encode("utf-8"), None)
    return b64encode(nonce + ciphertext).decode("ascii")


def decrypt_token(encrypted: str) -> str:
    """
    Decrypt a token produced by encrypt_token.

    Raises:
        ValueError: If the data is malformed or was encrypted with another key
    """
    try:
        raw = b64decode(encrypted, validate=True)
    except ValueError as e:
        raise ValueError("Invalid encrypted token format") from e

    if len(raw) <= NONCE_SIZE:
        raise ValueError("Invalid encrypted token format")

    nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        plaintext = AESGCM(_get_encryption_key()).decrypt(nonce, ciphertext, None)
    except InvalidTag as e:
        raise ValueError("Token decryption failed: wrong key or corrupted data") from e
    return plaintext.decode("utf-8")
