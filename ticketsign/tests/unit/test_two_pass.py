"""
Unit tests for two-pass ticket issuance.
"""
from dataclasses import replace

import pytest

from ticketsign.core.signing.errors import IssueStage, ProtocolError, SigningError, StructuralError
from ticketsign.core.signing.verify import sign_message
from ticketsign.core.tickets.container import ByteRange, TicketContainerEncoder
from ticketsign.core.tickets.issuer import TwoPassIssuer, verify_ticket


class _StaticSigner:
    """Returns a fixed signature."""

    def __init__(self, signature):
        self.signature = signature
        self.calls = []

    async def sign(self, data: bytes) -> bytes:
        self.calls.append(data)
        return self.signature

    async def get_public_key(self) -> bytes:
        return b""


class _FailingSigner:
    def __init__(self, error):
        self.error = error

    async def sign(self, data: bytes) -> bytes:
        raise self.error

    async def get_public_key(self) -> bytes:
        return b""


class _ShiftingEncoder(TicketContainerEncoder):
    """Encoder whose signed range depends on the signature length."""

    def extract_signed_range(self, data):
        signed = super().extract_signed_range(data)
        if len(data) - signed.end - 1 != 72:
            return ByteRange(signed.offset + 1, signed.length - 1)
        return signed


class _BrokenExtractEncoder(TicketContainerEncoder):
    def extract_signed_range(self, data):
        raise ValueError("cannot parse")


class _TypeErrorEncoder(TicketContainerEncoder):
    def encode(self, fields, signature):
        raise TypeError("unsupported field type")


class TestBuild:
    """Test pass 1."""

    def test_placeholder(self, encoder, local_signer):
        """The placeholder is 72 zero bytes."""
        issuer = TwoPassIssuer(encoder, local_signer)
        assert issuer.placeholder == bytes(72)

    def test_draft(self, encoder, local_signer, ticket_fields):
        """The draft embeds the placeholder and exposes the signed bytes."""
        draft = TwoPassIssuer(encoder, local_signer).build(ticket_fields)

        assert draft.encoded.endswith(bytes([72]) + bytes(72))
        assert draft.signed_data == encoder.encode_level1(ticket_fields)

    def test_encode_failure_is_built_stage(self, encoder, local_signer, ticket_fields):
        """Encoder errors surface as StructuralError at the build stage."""
        issuer = TwoPassIssuer(encoder, local_signer)
        with pytest.raises(StructuralError) as exc_info:
            issuer.build(replace(ticket_fields, key_id=-1))

        assert exc_info.value.stage == IssueStage.BUILT
        assert str(exc_info.value).startswith("[built]")

    def test_extract_failure_is_extracted_stage(self, local_signer, ticket_fields):
        """Extraction errors surface at the extraction stage."""
        issuer = TwoPassIssuer(_BrokenExtractEncoder(), local_signer)
        with pytest.raises(StructuralError) as exc_info:
            issuer.build(ticket_fields)

        assert exc_info.value.stage == IssueStage.EXTRACTED

    @pytest.mark.parametrize(
        "change",
        [{"rail_ticket": {"x": {1, 2}}}, {"level2_public_key": "not bytes"}, {"level1_key_alg": None}],
    )
    def test_unencodable_field_is_built_stage(self, encoder, local_signer, ticket_fields, change):
        """Fields of the wrong type fail at the build stage like any other encoder error."""
        issuer = TwoPassIssuer(encoder, local_signer)
        with pytest.raises(StructuralError) as exc_info:
            issuer.build(replace(ticket_fields, **change))

        assert exc_info.value.stage == IssueStage.BUILT

    def test_encoder_type_error_is_built_stage(self, local_signer, ticket_fields):
        """A TypeError from a custom encoder is attributed to the build stage."""
        issuer = TwoPassIssuer(_TypeErrorEncoder(), local_signer)
        with pytest.raises(StructuralError) as exc_info:
            issuer.build(ticket_fields)

        assert exc_info.value.stage == IssueStage.BUILT


class TestIssue:
    """Test the full protocol."""

    @pytest.mark.asyncio
    async def test_issue_and_verify(self, encoder, local_signer, keypair, ticket_fields):
        """An issued ticket verifies under the signer's key."""
        ticket = await TwoPassIssuer(encoder, local_signer).issue(ticket_fields)

        assert verify_ticket(ticket.barcode, keypair.public_key)
        assert ticket.hex == ticket.barcode.hex()
        assert encoder.decode(ticket.barcode) == (ticket_fields, ticket.signature)

    @pytest.mark.asyncio
    async def test_signed_range_stable_for_all_lengths(self, encoder, local_signer, keypair, ticket_fields):
        """For references of 1..1000 bytes the signed range is identical in both passes."""
        issuer = TwoPassIssuer(encoder, local_signer)

        for length in range(1, 1001):
            fields = replace(ticket_fields, ticket_reference=b"R" * length)
            draft = issuer.build(fields)
            ticket = await issuer.sign(draft)

            assert ticket.signed_range == draft.signed_range
            assert ticket.signed_data == draft.signed_data
            assert ticket.barcode[ticket.signed_range.end + 1:] == ticket.signature
            assert ticket.barcode[ticket.signed_range.end] == len(ticket.signature)
            assert verify_ticket(ticket.barcode, keypair.public_key)

    @pytest.mark.asyncio
    async def test_signer_sees_exact_range(self, encoder, ticket_fields):
        """The signer receives exactly the extracted bytes."""
        signer = _StaticSigner(bytes([0x30, 0x06, 0x02, 0x01, 0x05, 0x02, 0x01, 0x07]))
        issuer = TwoPassIssuer(encoder, signer)

        draft = issuer.build(ticket_fields)
        await issuer.sign(draft)

        assert signer.calls == [draft.signed_data]

    @pytest.mark.asyncio
    async def test_tampered_ticket_fails(self, encoder, local_signer, keypair, other_keypair, ticket_fields):
        """A modified ticket or another key does not verify."""
        ticket = await TwoPassIssuer(encoder, local_signer).issue(ticket_fields)

        tampered = bytearray(ticket.barcode)
        tampered[ticket.signed_range.offset + 3] ^= 0x01
        assert not verify_ticket(bytes(tampered), keypair.public_key)
        assert not verify_ticket(ticket.barcode, other_keypair.public_key)
        assert not verify_ticket(b"garbage", keypair.public_key)


class TestSigningFailures:
    """Test failure stages during signing."""

    @pytest.mark.asyncio
    async def test_signer_error_is_signed_stage(self, encoder, ticket_fields):
        """A SigningError from the signer gets the signed stage attached."""
        issuer = TwoPassIssuer(encoder, _FailingSigner(SigningError("KMS returned HTTP 503")))
        with pytest.raises(SigningError) as exc_info:
            await issuer.issue(ticket_fields)

        assert exc_info.value.stage == IssueStage.SIGNED
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unexpected_signer_error_wrapped(self, encoder, ticket_fields):
        """Other signer exceptions are wrapped in SigningError."""
        issuer = TwoPassIssuer(encoder, _FailingSigner(RuntimeError("device unplugged")))
        with pytest.raises(SigningError) as exc_info:
            await issuer.issue(ticket_fields)

        assert exc_info.value.stage == IssueStage.SIGNED
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signature", [b"", b"\x30\x00", b"not der"])
    async def test_unusable_signature(self, encoder, ticket_fields, signature):
        """Empty or malformed signatures are SigningErrors."""
        issuer = TwoPassIssuer(encoder, _StaticSigner(signature))
        with pytest.raises(SigningError):
            await issuer.issue(ticket_fields)

    @pytest.mark.asyncio
    async def test_signature_exceeds_placeholder(self, encoder, keypair, ticket_fields):
        """A signature longer than the placeholder is a structural error."""
        signature = sign_message(keypair.private_key, b"x")
        issuer = TwoPassIssuer(encoder, _StaticSigner(signature), placeholder_length=8)

        with pytest.raises(StructuralError) as exc_info:
            await issuer.issue(ticket_fields)
        assert exc_info.value.stage == IssueStage.SIGNED

    @pytest.mark.asyncio
    async def test_range_mismatch(self, ticket_fields):
        """A signed range that moves between passes is a structural error."""
        signer = _StaticSigner(bytes([0x30, 0x06, 0x02, 0x01, 0x05, 0x02, 0x01, 0x07]))
        issuer = TwoPassIssuer(_ShiftingEncoder(), signer)

        with pytest.raises(StructuralError, match="changed between passes") as exc_info:
            await issuer.issue(ticket_fields)
        assert exc_info.value.stage == IssueStage.SIGNED

    @pytest.mark.asyncio
    async def test_errors_share_base(self, encoder, ticket_fields):
        """Structural and signing errors are both ProtocolErrors."""
        issuer = TwoPassIssuer(encoder, _StaticSigner(b""))
        with pytest.raises(ProtocolError):
            await issuer.issue(ticket_fields)
