"""
Error Taxonomy

Exceptions raised by the codec, the derivation engine and the two-pass
issuance protocol.

Verification failures are NOT exceptions: see VerificationResult in
ticketsign.core.signing.verify.
"""

from enum import Enum
from typing import Optional


class IssueStage(str, Enum):
    """Step of a signing operation in which a failure occurred."""
    BUILT = "built"
    EXTRACTED = "extracted"
    SIGNED = "signed"


class TicketSignError(Exception):
    """Base class for all ticketsign errors."""


class MalformedSignature(TicketSignError, ValueError):
    """A signature could not be parsed or encoded."""


class DerivationError(TicketSignError, ValueError):
    """Invalid input to key derivation (secret length, bit count, key specs)."""


class ProtocolError(TicketSignError):
    """
    Failure inside the two-pass signing protocol.

    Attributes:
        stage: Step in which the failure occurred (None outside the protocol)
    """

    def __init__(self, message: str, stage: Optional[IssueStage] = None):
        self.stage = stage
        if stage is not None:
            message = f"[{stage.value}] {message}"
        super().__init__(message)


class StructuralError(ProtocolError):
    """The signed byte range could not be located, or changed between passes."""


class SigningError(ProtocolError):
    """The signer was unreachable or returned no usable signature."""
