"""
Ticket Container Encoding

A compact binary ticket container with a level 1 detached signature.
All integers are big-endian.

    "TS" | header_version u8 | level1_len u16 | level1_data | sig_len u8 | signature

    level1_data = fcb_version u8 | flags u8 | [provider u16] | [key_id u16]
                  | level1_key_alg | level1_signing_alg
                  | level2_key_alg | level2_signing_alg
                  | level2_public_key | ticket_reference | rail_ticket

Each variable field in level1_data is a u16 length followed by its bytes;
rail_ticket is canonical JSON. The level 1 signature covers exactly
level1_data, so the signed range never depends on the signature itself.
"""

import struct
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

from ticketsign.core.signing.canonical import canonicalize, parse_canonical


MAGIC = b"TS"

# OID for EC key on P-256 curve
EC_P256_KEY_ALG = "1.2.840.10045.3.1.7"
# OID for ECDSA with SHA-256 signing
ECDSA_SHA256_SIGNING_ALG = "1.2.840.10045.4.3.2"

_FLAG_PROVIDER = 0x01
_FLAG_KEY_ID = 0x02

_HEADER_SIZE = len(MAGIC) + 1 + 2
_MAX_FIELD_LENGTH = 0xFFFF
_MAX_SIGNATURE_LENGTH = 0xFF


class ContainerFormatError(ValueError):
    """Ticket bytes could not be encoded or parsed."""


@dataclass(frozen=True)
class ByteRange:
    """A contiguous range inside an encoded document."""
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def of(self, data: bytes) -> bytes:
        """Slice this range out of data."""
        return data[self.offset:self.end]


class DocumentEncoder(Protocol):
    """Encodes a document around a detached signature and locates the signed bytes."""

    def encode(self, fields: Any, signature: bytes) -> bytes:  # pragma: no cover - protocol
        ...

    def extract_signed_range(self, data: bytes) -> ByteRange:  # pragma: no cover - protocol
        ...


@dataclass(frozen=True)
class TicketFields:
    """Every ticket field except the level 1 signature."""
    level2_public_key: bytes
    rail_ticket: Dict[str, Any] = field(default_factory=dict)
    ticket_reference: bytes = b""
    header_version: int = 2
    fcb_version: int = 2
    security_provider_num: Optional[int] = None
    key_id: Optional[int] = None
    level1_key_alg: str = EC_P256_KEY_ALG
    level1_signing_alg: str = ECDSA_SHA256_SIGNING_ALG
    level2_key_alg: str = EC_P256_KEY_ALG
    level2_signing_alg: str = ECDSA_SHA256_SIGNING_ALG


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise ContainerFormatError(
                f"Truncated level 1 data: need {n} bytes at offset {self.pos}, have {len(self.data) - self.pos}"
            )
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def var(self) -> bytes:
        return self.take(self.u16())


def _var(value: bytes, name: str) -> bytes:
    if len(value) > _MAX_FIELD_LENGTH:
        raise ContainerFormatError(f"{name} is too long ({len(value)} bytes)")
    return struct.pack(">H", len(value)) + value


class TicketContainerEncoder:
    """Encoder for the binary ticket container."""

    def encode_level1(self, fields: TicketFields) -> bytes:
        """Encode the signed part of the ticket."""
        flags = 0
        if fields.security_provider_num is not None:
            flags |= _FLAG_PROVIDER
        if fields.key_id is not None:
            flags |= _FLAG_KEY_ID

        try:
            parts = [struct.pack(">BB", fields.fcb_version, flags)]
            if fields.security_provider_num is not None:
                parts.append(struct.pack(">H", fields.security_provider_num))
            if fields.key_id is not None:
                parts.append(struct.pack(">H", fields.key_id))
        except struct.error as e:
            raise ContainerFormatError(f"Numeric field out of range: {e}") from e

        try:
            parts.extend([
                _var(fields.level1_key_alg.encode("ascii"), "level1_key_alg"),
                _var(fields.level1_signing_alg.encode("ascii"), "level1_signing_alg"),
                _var(fields.level2_key_alg.encode("ascii"), "level2_key_alg"),
                _var(fields.level2_signing_alg.encode("ascii"), "level2_signing_alg"),
                _var(bytes(fields.level2_public_key), "level2_public_key"),
                _var(bytes(fields.ticket_reference), "ticket_reference"),
                _var(canonicalize(fields.rail_ticket), "rail_ticket"),
            ])
        except ContainerFormatError:
            raise
        except (AttributeError, TypeError, ValueError) as e:
            raise ContainerFormatError(f"Unencodable field: {e}") from e
        return b"".join(parts)

    def encode(self, fields: TicketFields, signature: bytes) -> bytes:
        """
        Encode a full ticket.

        Raises:
            ContainerFormatError: If a field does not fit the format
        """
        level1 = self.encode_level1(fields)
        if len(level1) > _MAX_FIELD_LENGTH:
            raise ContainerFormatError(f"Level 1 data is too long ({len(level1)} bytes)")
        if len(signature) > _MAX_SIGNATURE_LENGTH:
            raise ContainerFormatError(f"Signature is too long ({len(signature)} bytes)")
        if not 0 <= fields.header_version <= 0xFF:
            raise ContainerFormatError(f"Invalid header version: {fields.header_version}")

        return b"".join([
            MAGIC,
            bytes([fields.header_version]),
            struct.pack(">H", len(level1)),
            level1,
            bytes([len(signature)]),
            bytes(signature),
        ])

    def extract_signed_range(self, data: bytes) -> ByteRange:
        """
        Locate level1_data inside an encoded ticket.

        Raises:
            ContainerFormatError: If the framing is invalid
        """
        if len(data) < _HEADER_SIZE:
            raise ContainerFormatError(f"Ticket too short: {len(data)} bytes")
        if data[:len(MAGIC)] != MAGIC:
            raise ContainerFormatError(f"Bad magic: {data[:len(MAGIC)]!r}")

        level1_len = struct.unpack(">H", data[len(MAGIC) + 1:_HEADER_SIZE])[0]
        signed = ByteRange(_HEADER_SIZE, level1_len)
        if signed.end + 1 > len(data):
            raise ContainerFormatError(
                f"Level 1 data ({level1_len} bytes) runs past the ticket ({len(data)} bytes)"
            )

        sig_len = data[signed.end]
        if signed.end + 1 + sig_len != len(data):
            raise ContainerFormatError(
                f"Signature length {sig_len} does not match the remaining {len(data) - signed.end - 1} bytes"
            )
        return signed

    def extract_signature(self, data: bytes) -> bytes:
        """Return the level 1 signature bytes."""
        signed = self.extract_signed_range(data)
        return data[signed.end + 1:]

    def decode(self, data: bytes) -> Tuple[TicketFields, bytes]:
        """
        Decode a ticket.

        Returns:
            Tuple of (fields, level 1 signature)
        """
        signed = self.extract_signed_range(data)
        reader = _Reader(signed.of(data))

        fcb_version = reader.u8()
        flags = reader.u8()
        provider = reader.u16() if flags & _FLAG_PROVIDER else None
        key_id = reader.u16() if flags & _FLAG_KEY_ID else None

        try:
            level1_key_alg = reader.var().decode("ascii")
            level1_signing_alg = reader.var().decode("ascii")
            level2_key_alg = reader.var().decode("ascii")
            level2_signing_alg = reader.var().decode("ascii")
            level2_public_key = reader.var()
            ticket_reference = reader.var()
            rail_ticket = parse_canonical(reader.var())
        except ContainerFormatError:
            raise
        except ValueError as e:
            # UnicodeDecodeError or JSONDecodeError
            raise ContainerFormatError(f"Invalid level 1 field: {e}") from e

        if reader.pos != len(reader.data):
            raise ContainerFormatError(f"{len(reader.data) - reader.pos} unexpected bytes in level 1 data")

        fields = TicketFields(
            level2_public_key=level2_public_key,
            rail_ticket=rail_ticket,
            ticket_reference=ticket_reference,
            header_version=data[len(MAGIC)],
            fcb_version=fcb_version,
            security_provider_num=provider,
            key_id=key_id,
            level1_key_alg=level1_key_alg,
            level1_signing_alg=level1_signing_alg,
            level2_key_alg=level2_key_alg,
            level2_signing_alg=level2_signing_alg,
        )
        return fields, data[signed.end + 1:]
