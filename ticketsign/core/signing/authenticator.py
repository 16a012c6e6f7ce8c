"""
Authenticator Secret Capability

The 32-byte secret comes from an authenticator's PRF evaluation (WebAuthn
"prf" extension): the same (credential, salt) pair always yields the same
output, and different salts or credentials yield independent outputs.

This module only abstracts that capability. No hardware API is assumed;
SoftwarePrfAuthenticator and StaticSecretProvider stand in for tests and
server-side tooling.

The secret is never logged, cached or persisted.
"""

import hashlib
import hmac
import logging
from typing import Protocol, runtime_checkable

from ticketsign.core.signing.errors import DerivationError

logger = logging.getLogger(__name__)


SECRET_SIZE = 32


@runtime_checkable
class SecretProvider(Protocol):
    """Produces a 32-byte secret for a context (PRF salt)."""

    async def get_secret(self, context: bytes) -> bytes:  # pragma: no cover - protocol
        ...


def prf_salt(label: str) -> bytes:
    """Fixed application PRF salt: SHA-256 of a label."""
    return hashlib.sha256(label.encode("utf-8")).digest()


def ticket_context(ticket_id: str) -> bytes:
    """Per-ticket PRF context: SHA-256 of the ticket ID."""
    return hashlib.sha256(ticket_id.encode("utf-8")).digest()


class SoftwarePrfAuthenticator:
    """
    Software PRF: HMAC-SHA256(seed, context).

    Mirrors the authenticator's determinism guarantees without hardware.
    """

    def __init__(self, seed: bytes):
        if len(seed) < SECRET_SIZE:
            raise ValueError(f"Seed must be at least {SECRET_SIZE} bytes, got {len(seed)}")
        self._seed = seed

    def __repr__(self) -> str:
        return "SoftwarePrfAuthenticator(<seed hidden>)"

    async def get_secret(self, context: bytes) -> bytes:
        return hmac.new(self._seed, context, hashlib.sha256).digest()


class StaticSecretProvider:
    """Returns the same secret for every context."""

    def __init__(self, secret: bytes):
        self._secret = secret

    def __repr__(self) -> str:
        return "StaticSecretProvider(<secret hidden>)"

    async def get_secret(self, context: bytes) -> bytes:
        return self._secret


async def obtain_secret(provider: SecretProvider, context: bytes) -> bytes:
    """
    Ask a provider for a secret and validate its size.

    Raises:
        DerivationError: If the provider returns anything but 32 bytes
    """
    secret = await provider.get_secret(context)
    if not isinstance(secret, (bytes, bytearray)) or len(secret) != SECRET_SIZE:
        size = len(secret) if isinstance(secret, (bytes, bytearray)) else type(secret).__name__
        raise DerivationError(f"Authenticator returned an invalid secret ({size}), expected {SECRET_SIZE} bytes")

    logger.debug(f"Obtained authenticator secret from {type(provider).__name__}")
    return bytes(secret)
