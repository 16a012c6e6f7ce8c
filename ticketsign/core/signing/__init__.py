"""
Deterministic Signing Core

ECDSA P-256 keys derived from an authenticator PRF secret (HKDF-SHA256),
DER <-> P1363 signature conversion, canonical JSON, RFC 7638 fingerprints
and signed payload verification.

The secret and derived private keys are never persisted: keys are
re-derived from the authenticator on demand.
"""

from ticketsign.core.signing.errors import (
    DerivationError,
    IssueStage,
    MalformedSignature,
    ProtocolError,
    SigningError,
    StructuralError,
    TicketSignError,
)
from ticketsign.core.signing.der import (
    MAX_DER_SIGNATURE_SIZE,
    der_to_p1363,
    p1363_to_der,
)
from ticketsign.core.signing.keys import (
    KeyPair,
    base64_to_public_key,
    generate_keypair,
    jwk_to_public_key,
    keypair_from_scalar,
    public_key_to_base64,
    public_key_to_jwk,
)
from ticketsign.core.signing.derivation import (
    DerivationContext,
    DerivedKey,
    IdentityKeys,
    KeySpec,
    application_salt,
    derive,
    derive_identity_keys,
    derive_key_set,
)
from ticketsign.core.signing.canonical import canonicalize, parse_canonical
from ticketsign.core.signing.thumbprint import fingerprint
from ticketsign.core.signing.authenticator import (
    SecretProvider,
    SoftwarePrfAuthenticator,
    StaticSecretProvider,
    obtain_secret,
    prf_salt,
    ticket_context,
)
from ticketsign.core.signing.registry import KeyRegistry, TrustedKey, load_trusted_keys
from ticketsign.core.signing.verify import (
    VerificationError,
    VerificationResult,
    sign_message,
    sign_payload,
    verify_message,
    verify_signed_payload,
)

__all__ = [
    # Errors
    "TicketSignError",
    "MalformedSignature",
    "DerivationError",
    "ProtocolError",
    "StructuralError",
    "SigningError",
    "IssueStage",
    # Codec
    "MAX_DER_SIGNATURE_SIZE",
    "p1363_to_der",
    "der_to_p1363",
    # Keys
    "KeyPair",
    "generate_keypair",
    "keypair_from_scalar",
    "public_key_to_jwk",
    "jwk_to_public_key",
    "public_key_to_base64",
    "base64_to_public_key",
    # Derivation
    "DerivationContext",
    "DerivedKey",
    "IdentityKeys",
    "KeySpec",
    "application_salt",
    "derive",
    "derive_key_set",
    "derive_identity_keys",
    # Canonical JSON / fingerprints
    "canonicalize",
    "parse_canonical",
    "fingerprint",
    # Authenticator
    "SecretProvider",
    "SoftwarePrfAuthenticator",
    "StaticSecretProvider",
    "obtain_secret",
    "prf_salt",
    "ticket_context",
    # Registry
    "KeyRegistry",
    "TrustedKey",
    "load_trusted_keys",
    # Verification
    "VerificationError",
    "VerificationResult",
    "sign_message",
    "verify_message",
    "sign_payload",
    "verify_signed_payload",
]
