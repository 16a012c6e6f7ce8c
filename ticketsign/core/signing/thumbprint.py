"""
JWK Thumbprints (RFC 7638)

The fingerprint of a public key is SHA-256 over the canonical JSON of its
required JWK members, base64url-encoded without padding:

    {"crv":"P-256","kty":"EC","x":"...","y":"..."}

It is used as the lookup key for anything addressed by public key.
Optional JWK members (kid, use, alg, ...) and member order do not affect it.
"""

import hashlib
from typing import Dict, Union

from cryptography.hazmat.primitives.asymmetric import ec

from ticketsign.core.signing.canonical import canonicalize
from ticketsign.core.signing.keys import KEY_TYPE, b64url_encode, public_key_to_jwk

# Required members for EC keys, already in lexicographic order
_EC_REQUIRED_MEMBERS = ("crv", "kty", "x", "y")


def thumbprint_input(jwk: Dict[str, str]) -> bytes:
    """
    Build the exact bytes hashed for an EC JWK thumbprint.

    Raises:
        ValueError: If the JWK is not an EC key or lacks a required member
    """
    if jwk.get("kty") != KEY_TYPE:
        raise ValueError(f"Only EC keys are supported, got kty={jwk.get('kty')!r}")

    missing = [m for m in _EC_REQUIRED_MEMBERS if m not in jwk]
    if missing:
        raise ValueError(f"JWK is missing required members: {missing}")

    return canonicalize({m: jwk[m] for m in _EC_REQUIRED_MEMBERS})


def fingerprint(public_key: Union[ec.EllipticCurvePublicKey, Dict[str, str]]) -> str:
    """
    Compute the RFC 7638 SHA-256 thumbprint of a public key.

    Args:
        public_key: A P-256 public key object or its JWK dict

    Returns:
        43-character base64url string
    """
    jwk = public_key if isinstance(public_key, dict) else public_key_to_jwk(public_key)
    return b64url_encode(hashlib.sha256(thumbprint_input(jwk)).digest())
