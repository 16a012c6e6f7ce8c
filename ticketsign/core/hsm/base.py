"""
Signer Interface

A signer produces ECDSA P-256 / SHA-256 signatures in DER over raw bytes
and exposes its public key as SPKI DER. Implementations:

- LocalSigner: in-process key (derived or generated)
- CloudKmsSigner: remote HSM (ticketsign.core.hsm.kms)
"""

import base64
import logging
from typing import List, Protocol, runtime_checkable

from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ConfigDict, Field

from ticketsign.core.signing.keys import ALGORITHM_EC_P256, public_key_to_spki_der
from ticketsign.core.signing.verify import sign_message

logger = logging.getLogger(__name__)


@runtime_checkable
class Signer(Protocol):
    """Signs bytes; hashing with SHA-256 happens inside the signer."""

    async def sign(self, data: bytes) -> bytes:  # pragma: no cover - protocol
        """Return a DER ECDSA signature over data."""
        ...

    async def get_public_key(self) -> bytes:  # pragma: no cover - protocol
        """Return the verification key as SPKI DER."""
        ...


class LocalSigner:
    """Signs with an in-process P-256 private key."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        self._private_key = private_key

    def __repr__(self) -> str:
        return "LocalSigner(<private key hidden>)"

    async def sign(self, data: bytes) -> bytes:
        return sign_message(self._private_key, data)

    async def get_public_key(self) -> bytes:
        return public_key_to_spki_der(self._private_key.public_key())


class KeyListingEntry(BaseModel):
    """One entry of the public key listing."""
    model_config = ConfigDict(populate_by_name=True)

    public_key: str = Field(..., alias="publicKey", description="Base64 SPKI DER")
    algorithm: str = Field(ALGORITHM_EC_P256, description="Key algorithm")


async def list_keys(signer: Signer) -> List[dict]:
    """
    Build the public key listing for a signer.

    Returns:
        [{"publicKey": "<base64 SPKI DER>", "algorithm": "EC_P256"}]
    """
    der = await signer.get_public_key()
    entry = KeyListingEntry(public_key=base64.b64encode(der).decode("ascii"))
    return [entry.model_dump(by_alias=True)]
