"""
Signers

Local and remote (HSM) ECDSA P-256 signers plus the public key listing.
"""

from ticketsign.core.hsm.base import (
    KeyListingEntry,
    LocalSigner,
    Signer,
    list_keys,
)
from ticketsign.core.hsm.kms import CloudKmsSigner, key_version_name

__all__ = [
    "Signer",
    "LocalSigner",
    "CloudKmsSigner",
    "KeyListingEntry",
    "key_version_name",
    "list_keys",
]
