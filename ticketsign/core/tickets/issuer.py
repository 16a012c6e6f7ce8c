"""
Two-Pass Ticket Issuance

The level 1 signature is stored inside the document it signs, so the
document is encoded twice:

1. Build: encode with a placeholder signature of maximum DER size
2. Extract: re-parse and locate the signed byte range (level 1 data)
3. Sign: have the signer (local key or HSM) sign exactly those bytes
4. Re-encode: encode again with the real signature

The signed range is a function of the non-signature fields only, so it is
bit-identical in both passes. This is checked after re-encoding.

Each step is a pure rebuild: an abandoned operation leaves nothing behind.
No retries happen here; retry policy belongs to the signer.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.asymmetric import ec

from ticketsign.core.hsm.base import Signer
from ticketsign.core.signing.der import MAX_DER_SIGNATURE_SIZE, der_to_p1363
from ticketsign.core.signing.errors import (
    IssueStage,
    MalformedSignature,
    SigningError,
    StructuralError,
)
from ticketsign.core.signing.verify import verify_message
from ticketsign.core.tickets.container import (
    ByteRange,
    DocumentEncoder,
    TicketContainerEncoder,
    TicketFields,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Draft:
    """A ticket encoded with the placeholder signature and its extracted signed range."""
    fields: TicketFields
    encoded: bytes
    signed_range: ByteRange

    @property
    def signed_data(self) -> bytes:
        return self.signed_range.of(self.encoded)


@dataclass(frozen=True)
class SignedTicket:
    """A ticket encoded with its real level 1 signature."""
    fields: TicketFields
    barcode: bytes
    signature: bytes
    signed_range: ByteRange

    @property
    def signed_data(self) -> bytes:
        return self.signed_range.of(self.barcode)

    @property
    def hex(self) -> str:
        """Hex-encoded barcode payload."""
        return self.barcode.hex()


class TwoPassIssuer:
    """
    Issues tickets whose level 1 signature is embedded in the ticket.

    Usage::

        issuer = TwoPassIssuer(TicketContainerEncoder(), CloudKmsSigner())
        ticket = await issuer.issue(fields)
        barcode_hex = ticket.hex
    """

    def __init__(
        self,
        encoder: DocumentEncoder,
        signer: Signer,
        placeholder_length: int = MAX_DER_SIGNATURE_SIZE,
    ):
        self.encoder = encoder
        self.signer = signer
        self.placeholder_length = placeholder_length

    @property
    def placeholder(self) -> bytes:
        """Deterministic placeholder of maximum signature size."""
        return bytes(self.placeholder_length)

    def build(self, fields: TicketFields) -> Draft:
        """
        Pass 1: encode with the placeholder and extract the signed range.

        Raises:
            StructuralError: If encoding or extraction fails
        """
        try:
            encoded = self.encoder.encode(fields, self.placeholder)
        except (ValueError, TypeError) as e:
            raise StructuralError(f"Encoder rejected the draft: {e}", IssueStage.BUILT) from e

        try:
            signed_range = self.encoder.extract_signed_range(encoded)
        except (ValueError, TypeError) as e:
            raise StructuralError(
                f"Could not locate the signed range in the draft: {e}", IssueStage.EXTRACTED
            ) from e

        logger.debug(
            f"Draft built: {len(encoded)} bytes, signed range "
            f"[{signed_range.offset}:{signed_range.end}]"
        )
        return Draft(fields=fields, encoded=encoded, signed_range=signed_range)

    async def _sign(self, data: bytes) -> bytes:
        try:
            signature = await self.signer.sign(data)
        except SigningError as e:
            raise SigningError(str(e), IssueStage.SIGNED) from e
        except Exception as e:
            logger.error(f"Signer {type(self.signer).__name__} failed: {e}")
            raise SigningError(f"Signer failed: {e}", IssueStage.SIGNED) from e

        if not signature:
            raise SigningError("Signer returned no signature", IssueStage.SIGNED)
        try:
            der_to_p1363(signature)
        except MalformedSignature as e:
            raise SigningError(f"Signer returned a malformed signature: {e}", IssueStage.SIGNED) from e
        if len(signature) > self.placeholder_length:
            raise StructuralError(
                f"Signature ({len(signature)} bytes) exceeds the placeholder ({self.placeholder_length} bytes)",
                IssueStage.SIGNED,
            )
        return signature

    async def sign(self, draft: Draft) -> SignedTicket:
        """
        Passes 3 and 4: sign the extracted range and re-encode.

        Raises:
            SigningError: If the signer fails or returns no usable signature
            StructuralError: If the re-encoded ticket's signed range differs from the draft's
        """
        signature = await self._sign(draft.signed_data)

        try:
            barcode = self.encoder.encode(draft.fields, signature)
            signed_range = self.encoder.extract_signed_range(barcode)
        except (ValueError, TypeError) as e:
            raise StructuralError(f"Re-encoding failed: {e}", IssueStage.SIGNED) from e

        if signed_range.of(barcode) != draft.signed_data:
            raise StructuralError("Signed byte range changed between passes", IssueStage.SIGNED)

        logger.info(
            f"Issued ticket: {len(barcode)} bytes, {signed_range.length} signed, "
            f"{len(signature)}-byte signature"
        )
        return SignedTicket(
            fields=draft.fields,
            barcode=barcode,
            signature=signature,
            signed_range=signed_range,
        )

    async def issue(self, fields: TicketFields) -> SignedTicket:
        """Run both passes."""
        return await self.sign(self.build(fields))


def verify_ticket(
    barcode: bytes,
    public_key: ec.EllipticCurvePublicKey,
    encoder: Optional[TicketContainerEncoder] = None,
) -> bool:
    """
    Verify the level 1 signature of an encoded ticket.

    Returns:
        True if the signature is valid; False for invalid signatures or framing
    """
    encoder = encoder or TicketContainerEncoder()
    try:
        signed_range = encoder.extract_signed_range(barcode)
    except ValueError as e:
        logger.debug(f"Rejecting ticket with invalid framing: {e}")
        return False

    signature = barcode[signed_range.end + 1:]
    return verify_message(public_key, signed_range.of(barcode), signature)
