"""
Signature Creation and Verification

ECDSA P-256 / SHA-256 signatures in ASN.1 DER, and the signed payload
wire format carried in ticket barcodes.

Signed Payload Format:
    {
        "publicKey": {JWK},
        <domain fields>,
        "signatureDate": "2026-01-01T12:00:00.000Z",
        "signature": "<base64url DER>"
    }

The signature covers canonicalize(payload without "signature").
Verification recomputes those bytes, validates the key fingerprint and
checks the signature plus a freshness window on signatureDate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from ticketsign.core.config import get_settings
from ticketsign.core.signing.canonical import canonicalize
from ticketsign.core.signing.der import (
    der_to_p1363,
    p1363_from_ints,
    p1363_to_der,
    p1363_to_ints,
)
from ticketsign.core.signing.errors import MalformedSignature
from ticketsign.core.signing.keys import (
    b64url_decode,
    b64url_encode,
    jwk_to_public_key,
    public_key_to_jwk,
)
from ticketsign.core.signing.registry import KeyRegistry
from ticketsign.core.signing.thumbprint import fingerprint

logger = logging.getLogger(__name__)


PUBLIC_KEY_FIELD = "publicKey"
SIGNATURE_DATE_FIELD = "signatureDate"
SIGNATURE_FIELD = "signature"

RESERVED_FIELDS = frozenset({PUBLIC_KEY_FIELD, SIGNATURE_DATE_FIELD, SIGNATURE_FIELD})


class VerificationError(Enum):
    """Enumeration of possible verification failures."""
    MISSING_FIELDS = "missing_fields"
    INVALID_PUBLIC_KEY = "invalid_public_key"
    INVALID_SIGNATURE_FORMAT = "invalid_signature_format"
    SIGNATURE_VERIFICATION_FAILED = "signature_verification_failed"
    INVALID_SIGNATURE_DATE = "invalid_signature_date"
    SIGNATURE_TOO_OLD = "signature_too_old"
    SIGNATURE_TOO_NEW = "signature_too_new"
    FINGERPRINT_MISMATCH = "fingerprint_mismatch"
    UNKNOWN_KEY = "unknown_key"
    INVALID_PAYLOAD = "invalid_payload"


@dataclass
class VerificationResult:
    """
    Result of signed payload verification.

    A failed verification is an expected outcome, not an error condition.

    Attributes:
        success: Whether verification succeeded
        error: Error type if verification failed
        error_message: Human-readable error message
        fingerprint: Thumbprint of the payload's public key (if parseable)
        signature_date: Parsed signatureDate (if valid)
        age_seconds: now - signatureDate (if valid)
    """
    success: bool
    error: Optional[VerificationError] = None
    error_message: Optional[str] = None
    fingerprint: Optional[str] = None
    signature_date: Optional[datetime] = None
    age_seconds: Optional[float] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, fingerprint: str, signature_date: datetime, age_seconds: float) -> "VerificationResult":
        """Create a successful result."""
        return cls(
            success=True,
            fingerprint=fingerprint,
            signature_date=signature_date,
            age_seconds=age_seconds,
        )

    @classmethod
    def fail(cls, error: VerificationError, message: str, fingerprint: Optional[str] = None) -> "VerificationResult":
        """Create a failed result."""
        return cls(
            success=False,
            error=error,
            error_message=message,
            fingerprint=fingerprint,
        )


def format_signature_date(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_signature_date(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp. Naive timestamps are taken as UTC.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"signatureDate must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sign_message(private_key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
    """
    Sign data with ECDSA P-256 / SHA-256.

    Returns:
        Canonical DER signature
    """
    r, s = decode_dss_signature(private_key.sign(data, ec.ECDSA(hashes.SHA256())))
    return p1363_to_der(p1363_from_ints(r, s))


def verify_message(public_key: ec.EllipticCurvePublicKey, data: bytes, signature: bytes) -> bool:
    """
    Verify a DER ECDSA P-256 / SHA-256 signature.

    Returns:
        True if valid. Malformed signatures are reported as False.
    """
    try:
        r, s = p1363_to_ints(der_to_p1363(signature))
        public_key.verify(encode_dss_signature(r, s), data, ec.ECDSA(hashes.SHA256()))
        return True
    except MalformedSignature as e:
        logger.debug(f"Rejecting malformed signature: {e}")
        return False
    except InvalidSignature:
        return False


def signing_input(payload: Dict[str, Any]) -> bytes:
    """Canonical bytes covered by the signature (every member but 'signature')."""
    return canonicalize({k: v for k, v in payload.items() if k != SIGNATURE_FIELD})


def sign_payload(
    private_key: ec.EllipticCurvePrivateKey,
    fields: Dict[str, Any],
    signature_date: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a signed payload.

    Args:
        private_key: Signing key
        fields: Domain fields (e.g. paymentRef, paymentDate)
        signature_date: Signing time (default: now)

    Returns:
        Payload dict including publicKey, signatureDate and signature

    Raises:
        ValueError: If fields use a reserved member name
    """
    reserved = RESERVED_FIELDS.intersection(fields)
    if reserved:
        raise ValueError(f"Reserved payload members: {sorted(reserved)}")

    payload: Dict[str, Any] = {
        PUBLIC_KEY_FIELD: public_key_to_jwk(private_key.public_key()),
        **fields,
        SIGNATURE_DATE_FIELD: format_signature_date(signature_date),
    }
    signature = sign_message(private_key, signing_input(payload))
    payload[SIGNATURE_FIELD] = b64url_encode(signature)
    return payload


def verify_signed_payload(
    payload: Dict[str, Any],
    *,
    max_age_seconds: Optional[float] = None,
    now: Optional[datetime] = None,
    expected_fingerprint: Optional[str] = None,
    registry: Optional[KeyRegistry] = None,
) -> VerificationResult:
    """
    Verify a signed payload.

    Performs the following checks in order:
    1. Required members are present
    2. publicKey is a valid P-256 JWK
    3. Fingerprint matches expected_fingerprint / is known to registry (if given)
    4. Signature decodes and verifies over the canonical bytes
    5. signatureDate is within the freshness window

    Args:
        payload: Parsed payload
        max_age_seconds: Freshness window (default: settings.signature_freshness_seconds)
        now: Reference time (default: current UTC time)
        expected_fingerprint: Fingerprint the key must have
        registry: Registry of trusted keys the key must belong to

    Returns:
        VerificationResult with success status and details
    """
    if max_age_seconds is None:
        max_age_seconds = get_settings().signature_freshness_seconds

    # 1. Required members
    if not isinstance(payload, dict):
        return VerificationResult.fail(VerificationError.MISSING_FIELDS, "Payload must be a JSON object")
    missing = sorted(m for m in RESERVED_FIELDS if not payload.get(m))
    if missing:
        return VerificationResult.fail(
            VerificationError.MISSING_FIELDS,
            f"Missing required members: {', '.join(missing)}"
        )

    # 2. Public key
    jwk = payload[PUBLIC_KEY_FIELD]
    try:
        if not isinstance(jwk, dict):
            raise ValueError("publicKey must be a JWK object")
        public_key = jwk_to_public_key(jwk)
    except ValueError as e:
        return VerificationResult.fail(VerificationError.INVALID_PUBLIC_KEY, f"Invalid public key: {e}")

    # 3. Fingerprint
    key_fingerprint = fingerprint(public_key)
    if expected_fingerprint is not None and key_fingerprint != expected_fingerprint:
        return VerificationResult.fail(
            VerificationError.FINGERPRINT_MISMATCH,
            f"Key fingerprint {key_fingerprint} does not match {expected_fingerprint}",
            key_fingerprint,
        )
    if registry is not None and registry.get(key_fingerprint) is None:
        return VerificationResult.fail(
            VerificationError.UNKNOWN_KEY,
            f"Key {key_fingerprint} is not trusted",
            key_fingerprint,
        )

    # 4. Signature
    try:
        signature = b64url_decode(payload[SIGNATURE_FIELD])
        der_to_p1363(signature)
    except (MalformedSignature, ValueError, TypeError) as e:
        return VerificationResult.fail(
            VerificationError.INVALID_SIGNATURE_FORMAT,
            f"Invalid signature encoding: {e}",
            key_fingerprint,
        )

    try:
        message = signing_input(payload)
    except (ValueError, TypeError) as e:
        return VerificationResult.fail(
            VerificationError.INVALID_PAYLOAD,
            f"Payload has no canonical JSON form: {e}",
            key_fingerprint,
        )

    if not verify_message(public_key, message, signature):
        return VerificationResult.fail(
            VerificationError.SIGNATURE_VERIFICATION_FAILED,
            "Signature verification failed",
            key_fingerprint,
        )

    # 5. Freshness
    try:
        signature_date = parse_signature_date(payload[SIGNATURE_DATE_FIELD])
    except ValueError as e:
        return VerificationResult.fail(
            VerificationError.INVALID_SIGNATURE_DATE,
            f"Invalid signatureDate: {e}",
            key_fingerprint,
        )

    now = now or datetime.now(timezone.utc)
    age = (now - signature_date).total_seconds()
    if age > max_age_seconds:
        return VerificationResult.fail(
            VerificationError.SIGNATURE_TOO_OLD,
            f"Signature is {age:.1f}s old (max {max_age_seconds}s)",
            key_fingerprint,
        )
    if age < -max_age_seconds:
        return VerificationResult.fail(
            VerificationError.SIGNATURE_TOO_NEW,
            f"Signature date is {-age:.1f}s in the future",
            key_fingerprint,
        )

    return VerificationResult.ok(key_fingerprint, signature_date, age)
