"""
Shared fixtures for the signing core tests.

No hardware and no network: the authenticator is a software PRF and the
HSM is replaced by a local signer or an httpx.MockTransport.
"""
import pytest

from ticketsign.core.config import Settings
from ticketsign.core.hsm.base import LocalSigner
from ticketsign.core.signing.authenticator import SoftwarePrfAuthenticator
from ticketsign.core.signing.derivation import DerivationContext, application_salt
from ticketsign.core.signing.keys import keypair_from_scalar
from ticketsign.core.tickets.container import TicketContainerEncoder, TicketFields


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Replace the global settings with defaults so no .env leaks into tests."""
    monkeypatch.setattr("ticketsign.core.config._settings", Settings(_env_file=None))


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, kms_project="test-project", kms_access_token="test-token")


@pytest.fixture
def derivation_context():
    """Derivation context with the default application constants."""
    return DerivationContext(
        salt=application_salt("dosipas-hkdf-salt-v1"),
        signing_domain="dosipas-ecdsa-p256",
        encryption_domain="dosipas-aes-gcm",
    )


@pytest.fixture
def zero_secret():
    """32 zero bytes."""
    return bytes(32)


@pytest.fixture
def keypair():
    """Key pair reconstructed from the scalar 0x0101...01."""
    return keypair_from_scalar(b"\x01" * 32)


@pytest.fixture
def other_keypair():
    """A second, unrelated key pair."""
    return keypair_from_scalar(b"\x02" * 32)


@pytest.fixture
def authenticator():
    """Software PRF authenticator with a fixed seed."""
    return SoftwarePrfAuthenticator(b"\x42" * 32)


@pytest.fixture
def local_signer(keypair):
    """Signer backed by the fixture key pair."""
    return LocalSigner(keypair.private_key)


@pytest.fixture
def encoder():
    """Ticket container encoder."""
    return TicketContainerEncoder()


@pytest.fixture
def ticket_fields(other_keypair):
    """Typical ticket fields with a level 2 key."""
    return TicketFields(
        level2_public_key=other_keypair.spki_der,
        rail_ticket={
            "issuingDetail": {"issuerNum": 1080, "issuingYear": 2026, "issuingDay": 290},
            "transportDocument": [{"openTicket": {"fromStationNum": 8000105, "toStationNum": 8000261}}],
        },
        ticket_reference=b"PAY-2026-0001",
        security_provider_num=1080,
        key_id=1,
    )
