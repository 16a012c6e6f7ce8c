"""
ECDSA P-256 Key Management

Provides key generation, deterministic reconstruction from a 32-byte scalar,
and serialization (JWK, SPKI DER, base64) for P-256 keypairs.
Uses the cryptography library for all cryptographic operations.
"""

import base64
from dataclasses import dataclass
from typing import Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ticketsign.core.signing.errors import DerivationError


CURVE_NAME = "P-256"
KEY_TYPE = "EC"
COORDINATE_SIZE = 32

# Key listing algorithm identifier
ALGORITHM_EC_P256 = "EC_P256"

# secp256r1 group order
P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Base64url decode with padding restoration."""
    padding = 4 - len(s) % 4
    if padding != 4:
        s += "=" * padding
    return base64.urlsafe_b64decode(s)


@dataclass(frozen=True)
class KeyPair:
    """
    A P-256 keypair.

    Attributes:
        private_key: Signing key
        public_key: Matching verification key
    """
    private_key: ec.EllipticCurvePrivateKey
    public_key: ec.EllipticCurvePublicKey

    def __repr__(self) -> str:
        return f"KeyPair(fingerprint={self.fingerprint!r})"

    @property
    def public_jwk(self) -> Dict[str, str]:
        return public_key_to_jwk(self.public_key)

    @property
    def fingerprint(self) -> str:
        from ticketsign.core.signing.thumbprint import fingerprint
        return fingerprint(self.public_key)

    @property
    def spki_der(self) -> bytes:
        return public_key_to_spki_der(self.public_key)

    @property
    def scalar_hex(self) -> str:
        """
        Private scalar as hex (debug display only).

        WARNING: This is the private key! Never log it.
        """
        value = self.private_key.private_numbers().private_value
        return value.to_bytes(COORDINATE_SIZE, "big").hex()


def generate_keypair() -> KeyPair:
    """
    Generate a new random P-256 keypair.

    Example:
        >>> keypair = generate_keypair()
        >>> pub_b64 = public_key_to_base64(keypair.public_key)
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    return KeyPair(private_key=private_key, public_key=private_key.public_key())


def keypair_from_scalar(scalar: bytes) -> KeyPair:
    """
    Reconstruct a P-256 keypair from a 32-byte private scalar.

    The public point is recomputed from the scalar, so the same scalar
    always yields identical public coordinates.

    Args:
        scalar: 32-byte big-endian private scalar

    Returns:
        KeyPair

    Raises:
        DerivationError: If the scalar is the wrong size or outside [1, n-1]
    """
    if len(scalar) != COORDINATE_SIZE:
        raise DerivationError(f"Scalar must be {COORDINATE_SIZE} bytes, got {len(scalar)}")

    value = int.from_bytes(scalar, "big")
    if not 0 < value < P256_ORDER:
        raise DerivationError("Scalar is outside the valid range for P-256")

    private_key = ec.derive_private_key(value, ec.SECP256R1())
    return KeyPair(private_key=private_key, public_key=private_key.public_key())


def public_key_to_jwk(public_key: ec.EllipticCurvePublicKey) -> Dict[str, str]:
    """
    Serialize a public key to a JWK with only the required EC members.

    Returns:
        {"kty": "EC", "crv": "P-256", "x": ..., "y": ...}
    """
    if not isinstance(public_key.curve, ec.SECP256R1):
        raise ValueError(f"Unsupported curve: {public_key.curve.name}")

    numbers = public_key.public_numbers()
    return {
        "kty": KEY_TYPE,
        "crv": CURVE_NAME,
        "x": b64url_encode(numbers.x.to_bytes(COORDINATE_SIZE, "big")),
        "y": b64url_encode(numbers.y.to_bytes(COORDINATE_SIZE, "big")),
    }


def jwk_to_public_key(jwk: Dict[str, str]) -> ec.EllipticCurvePublicKey:
    """
    Deserialize a P-256 public JWK. Extra members are ignored.

    Raises:
        ValueError: If the JWK is not a valid P-256 public key
    """
    if jwk.get("kty") != KEY_TYPE or jwk.get("crv") != CURVE_NAME:
        raise ValueError(f"Unsupported JWK: kty={jwk.get('kty')!r} crv={jwk.get('crv')!r}")

    try:
        x = b64url_decode(jwk["x"])
        y = b64url_decode(jwk["y"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid JWK coordinates: {e}") from e

    if len(x) != COORDINATE_SIZE or len(y) != COORDINATE_SIZE:
        raise ValueError(f"JWK coordinates must be {COORDINATE_SIZE} bytes")

    numbers = ec.EllipticCurvePublicNumbers(
        int.from_bytes(x, "big"),
        int.from_bytes(y, "big"),
        ec.SECP256R1(),
    )
    # Raises ValueError if the point is not on the curve
    return numbers.public_key()


def public_key_to_spki_der(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Serialize a public key to SubjectPublicKeyInfo DER."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_key_to_base64(public_key: ec.EllipticCurvePublicKey) -> str:
    """
    Serialize a public key to a base64-encoded SPKI DER string.

    This is the form used in key listings and trusted_keys.yaml.
    """
    return base64.b64encode(public_key_to_spki_der(public_key)).decode("ascii")


def spki_der_to_public_key(der: bytes) -> ec.EllipticCurvePublicKey:
    """
    Deserialize SPKI DER bytes to a P-256 public key.

    Raises:
        ValueError: If the key is invalid or not P-256
    """
    try:
        public_key = serialization.load_der_public_key(der)
    except Exception as e:
        raise ValueError(f"Invalid public key: {e}") from e

    if not isinstance(public_key, ec.EllipticCurvePublicKey) or not isinstance(
        public_key.curve, ec.SECP256R1
    ):
        raise ValueError(f"Not a P-256 key: {type(public_key).__name__}")
    return public_key


def base64_to_public_key(b64_key: str) -> ec.EllipticCurvePublicKey:
    """
    Deserialize a base64-encoded SPKI DER public key.

    Raises:
        ValueError: If the key is invalid
    """
    try:
        der = base64.b64decode(b64_key, validate=True)
    except Exception as e:
        raise ValueError(f"Invalid base64 public key: {e}") from e
    return spki_der_to_public_key(der)


def private_key_to_pem(private_key: ec.EllipticCurvePrivateKey) -> str:
    """
    Export a private key as unencrypted PKCS#8 PEM.

    WARNING: Private key material! Handle with care.
    """
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
