"""
ECDSA Signature Codec

Converts between the fixed-width P1363 form (r || s, 32 bytes each) and the
ASN.1 DER form used on the wire:

    SEQUENCE { INTEGER r, INTEGER s }

Only single-byte DER lengths (0-127) are supported, which covers every
P-256 signature (at most 72 bytes). Anything needing the long length form
is rejected with MalformedSignature.
"""

from typing import Tuple

from ticketsign.core.signing.errors import MalformedSignature


SEQUENCE_TAG = 0x30
INTEGER_TAG = 0x02

# Width of one scalar for P-256
SCALAR_SIZE = 32
P1363_SIGNATURE_SIZE = 2 * SCALAR_SIZE

# 2 (SEQUENCE header) + 2 * (2 (INTEGER header) + 1 (sign byte) + 32)
MAX_DER_SIGNATURE_SIZE = 72

# Largest length expressible in the short DER length form
_MAX_SHORT_LENGTH = 0x7F


def _encode_integer(value: bytes) -> bytes:
    """Encode a big-endian unsigned integer as a minimal DER INTEGER."""
    # Strip leading zeros but keep at least one byte
    start = 0
    while start < len(value) - 1 and value[start] == 0:
        start += 1
    trimmed = value[start:]

    # High bit set would read as negative
    if trimmed[0] & 0x80:
        trimmed = b"\x00" + trimmed

    return bytes([INTEGER_TAG, len(trimmed)]) + trimmed


def _read_integer(der: bytes, offset: int) -> Tuple[bytes, int]:
    """
    Read a DER INTEGER at offset.

    Returns:
        Tuple of (value without leading zero padding, offset after the INTEGER)
    """
    if offset + 2 > len(der):
        raise MalformedSignature(f"Truncated INTEGER header at offset {offset}")
    if der[offset] != INTEGER_TAG:
        raise MalformedSignature(
            f"Expected INTEGER tag 0x02 at offset {offset}, got 0x{der[offset]:02x}"
        )

    length = der[offset + 1]
    if length > _MAX_SHORT_LENGTH:
        raise MalformedSignature("Multi-byte DER lengths are not supported")
    if length == 0:
        raise MalformedSignature(f"Empty INTEGER at offset {offset}")

    end = offset + 2 + length
    if end > len(der):
        raise MalformedSignature(
            f"INTEGER at offset {offset} runs past the buffer ({end} > {len(der)})"
        )

    value = der[offset + 2:end]
    start = 0
    while start < len(value) - 1 and value[start] == 0:
        start += 1
    value = value[start:]

    if len(value) > SCALAR_SIZE:
        raise MalformedSignature(
            f"INTEGER is {len(value)} bytes, larger than {SCALAR_SIZE}"
        )
    return value, end


def p1363_to_der(signature: bytes) -> bytes:
    """
    Convert a fixed-width r || s signature to ASN.1 DER.

    Args:
        signature: 64-byte P1363 signature

    Returns:
        Canonical (minimal) DER encoding

    Raises:
        MalformedSignature: If the input is not exactly 64 bytes
    """
    if len(signature) != P1363_SIGNATURE_SIZE:
        raise MalformedSignature(
            f"P1363 signature must be {P1363_SIGNATURE_SIZE} bytes, got {len(signature)}"
        )

    r_der = _encode_integer(signature[:SCALAR_SIZE])
    s_der = _encode_integer(signature[SCALAR_SIZE:])
    body = r_der + s_der
    if len(body) > _MAX_SHORT_LENGTH:
        raise MalformedSignature("Multi-byte DER lengths are not supported")

    return bytes([SEQUENCE_TAG, len(body)]) + body


def der_to_p1363(der: bytes) -> bytes:
    """
    Convert an ASN.1 DER ECDSA signature to fixed-width r || s.

    Every tag and length is validated before use. Trailing bytes after the
    SEQUENCE, or inside it after s, are rejected.

    Args:
        der: DER-encoded signature

    Returns:
        64-byte P1363 signature

    Raises:
        MalformedSignature: On any structural problem
    """
    if len(der) < 2:
        raise MalformedSignature(f"DER signature too short: {len(der)} bytes")
    if der[0] != SEQUENCE_TAG:
        raise MalformedSignature(f"Expected SEQUENCE tag 0x30, got 0x{der[0]:02x}")

    seq_len = der[1]
    if seq_len > _MAX_SHORT_LENGTH:
        raise MalformedSignature("Multi-byte DER lengths are not supported")
    if 2 + seq_len != len(der):
        raise MalformedSignature(
            f"SEQUENCE length {seq_len} does not match buffer ({len(der) - 2} bytes)"
        )

    r, offset = _read_integer(der, 2)
    s, offset = _read_integer(der, offset)
    if offset != len(der):
        raise MalformedSignature(f"Unexpected {len(der) - offset} trailing bytes in SEQUENCE")

    return r.rjust(SCALAR_SIZE, b"\x00") + s.rjust(SCALAR_SIZE, b"\x00")


def p1363_from_ints(r: int, s: int) -> bytes:
    """Lay out an (r, s) pair as the fixed-width form."""
    try:
        return r.to_bytes(SCALAR_SIZE, "big") + s.to_bytes(SCALAR_SIZE, "big")
    except OverflowError as e:
        raise MalformedSignature(f"Signature scalar does not fit in {SCALAR_SIZE} bytes") from e


def p1363_to_ints(signature: bytes) -> Tuple[int, int]:
    """Split a fixed-width signature into its (r, s) integers."""
    if len(signature) != P1363_SIGNATURE_SIZE:
        raise MalformedSignature(
            f"P1363 signature must be {P1363_SIGNATURE_SIZE} bytes, got {len(signature)}"
        )
    return (
        int.from_bytes(signature[:SCALAR_SIZE], "big"),
        int.from_bytes(signature[SCALAR_SIZE:], "big"),
    )
