"""
AES-256-GCM sealing with the derived symmetric key.

Sealed format: nonce (12 bytes) || ciphertext || tag (16 bytes)
"""

import os
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12
KEY_SIZE = 32
_TAG_SIZE = 16


def seal(key: bytes, plaintext: bytes, associated_data: Optional[bytes] = None) -> bytes:
    """Encrypt and authenticate plaintext under a 32-byte key."""
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")

    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, associated_data)


def open_sealed(key: bytes, sealed: bytes, associated_data: Optional[bytes] = None) -> bytes:
    """
    Decrypt a sealed box.

    Raises:
        ValueError: For a wrong key size or truncated input
        cryptography.exceptions.InvalidTag: If the data was tampered with
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(sealed) < NONCE_SIZE + _TAG_SIZE:
        raise ValueError(f"Sealed data too short: {len(sealed)} bytes")

    return AESGCM(key).decrypt(sealed[:NONCE_SIZE], sealed[NONCE_SIZE:], associated_data)
