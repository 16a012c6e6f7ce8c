"""
HKDF Key Derivation

Expands one 32-byte secret (an authenticator PRF output) into independent,
purpose-scoped keys using HKDF-SHA256 (RFC 5869):

    PRK = HMAC-SHA256(salt, secret)              # extract
    OKM = HKDF-Expand(PRK, info=domain, length)  # expand

The salt is public and application-specific: SHA-256 of a fixed label.
It only separates this application's derivations from others that might
reuse the same secret.

Derived keys are recomputed on demand and never persisted.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ticketsign.core.config import Settings, get_settings
from ticketsign.core.signing.errors import DerivationError
from ticketsign.core.signing.keys import KeyPair, keypair_from_scalar

logger = logging.getLogger(__name__)


SECRET_SIZE = 32

# RFC 5869: L <= 255 * HashLen
_MAX_OUTPUT_BYTES = 255 * 32

ALGORITHM_ECDSA_P256 = "ECDSA_P256"
ALGORITHM_AES_GCM_256 = "AES_GCM_256"


def application_salt(label: str) -> bytes:
    """Public HKDF salt: SHA-256 of a fixed application label."""
    return hashlib.sha256(label.encode("utf-8")).digest()


@dataclass(frozen=True)
class KeySpec:
    """One entry of a batch derivation."""
    domain: str
    purpose: str
    bits: int = 256
    algorithm: str = ""


@dataclass(frozen=True)
class DerivedKey:
    """
    A derived key.

    Attributes:
        purpose: Purpose tag (e.g. "signing", "encryption")
        key: Raw key bytes (excluded from repr)
        algorithm: Algorithm the key is meant for
    """
    purpose: str
    key: bytes = field(repr=False)
    algorithm: str = ""


@dataclass(frozen=True)
class DerivationContext:
    """
    Named constants for one derivation context.

    Passed explicitly into derivation calls so independent contexts
    can coexist in one process.
    """
    salt: bytes
    signing_domain: str
    encryption_domain: str

    @classmethod
    def from_settings(cls, settings: Settings = None) -> "DerivationContext":
        settings = settings or get_settings()
        return cls(
            salt=application_salt(settings.hkdf_salt_label),
            signing_domain=settings.signing_domain,
            encryption_domain=settings.encryption_domain,
        )


@dataclass(frozen=True)
class IdentityKeys:
    """The key set derived from one authenticator secret."""
    encryption_key: bytes = field(repr=False)
    signing: KeyPair = field(repr=False)

    @property
    def fingerprint(self) -> str:
        return self.signing.fingerprint


def derive(secret: bytes, salt: bytes, domain: str, output_bits: int = 256) -> bytes:
    """
    Derive output_bits of key material bound to domain.

    Args:
        secret: 32-byte input keying material
        salt: Public application salt
        domain: HKDF info string (domain separator)
        output_bits: Number of bits to produce (multiple of 8)

    Returns:
        output_bits // 8 bytes

    Raises:
        DerivationError: If secret is not 32 bytes or output_bits is not a multiple of 8
    """
    if len(secret) != SECRET_SIZE:
        raise DerivationError(f"Secret must be {SECRET_SIZE} bytes, got {len(secret)}")
    if output_bits < 0 or output_bits % 8 != 0:
        raise DerivationError(f"output_bits must be a non-negative multiple of 8, got {output_bits}")

    length = output_bits // 8
    if length == 0:
        return b""
    if length > _MAX_OUTPUT_BYTES:
        raise DerivationError(f"HKDF-SHA256 cannot produce more than {_MAX_OUTPUT_BYTES} bytes")

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=domain.encode("utf-8"),
    )
    return hkdf.derive(secret)


def derive_key_set(secret: bytes, salt: bytes, specs: Iterable[KeySpec]) -> Dict[str, DerivedKey]:
    """
    Derive several independent keys from one secret.

    Args:
        secret: 32-byte input keying material
        salt: Public application salt
        specs: Key specifications; purposes and domains must be unique

    Returns:
        Dict of purpose -> DerivedKey

    Raises:
        DerivationError: On invalid secret, bit count, or colliding purposes/domains
    """
    keys: Dict[str, DerivedKey] = {}
    domains = set()

    for spec in specs:
        if spec.purpose in keys:
            raise DerivationError(f"Duplicate purpose tag: '{spec.purpose}'")
        if spec.domain in domains:
            raise DerivationError(f"Duplicate derivation domain: '{spec.domain}'")
        domains.add(spec.domain)

        keys[spec.purpose] = DerivedKey(
            purpose=spec.purpose,
            key=derive(secret, salt, spec.domain, spec.bits),
            algorithm=spec.algorithm,
        )

    logger.debug(f"Derived {len(keys)} keys: {sorted(keys)}")
    return keys


def derive_identity_keys(secret: bytes, context: DerivationContext) -> IdentityKeys:
    """
    Derive the AES-GCM-256 key and the ECDSA P-256 key pair for one identity.

    The signing scalar comes from its own HKDF domain and is turned into a
    key pair by recomputing the public point.

    Raises:
        DerivationError: On invalid secret or an out-of-range scalar
    """
    keys = derive_key_set(
        secret,
        context.salt,
        [
            KeySpec(context.encryption_domain, "encryption", 256, ALGORITHM_AES_GCM_256),
            KeySpec(context.signing_domain, "signing", 256, ALGORITHM_ECDSA_P256),
        ],
    )
    signing = keypair_from_scalar(keys["signing"].key)
    logger.info(f"Derived identity keys (fingerprint={signing.fingerprint})")

    return IdentityKeys(encryption_key=keys["encryption"].key, signing=signing)
