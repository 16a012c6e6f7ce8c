"""
Unit tests for canonical JSON and JWK thumbprints.
"""
import base64
import hashlib
import json
import math

import pytest

from ticketsign.core.signing.canonical import canonicalize, parse_canonical
from ticketsign.core.signing.keys import jwk_to_public_key
from ticketsign.core.signing.thumbprint import fingerprint, thumbprint_input


# RFC 7638 does not publish an EC example; this JWK is the EC key from RFC 7517 A.1
RFC7517_EC_JWK = {
    "kty": "EC",
    "crv": "P-256",
    "x": "MKBCTNIcKUSDii11ySs3526iDZ8AiTo7Tu6KPAqv7D4",
    "y": "4Etl6SRW2YiLUrN5vfvVHuhp7x8PxltmWWlbbM4IFyM",
    "use": "enc",
    "kid": "1",
}


class TestCanonicalize:
    """Test canonical serialization."""

    def test_key_order_irrelevant(self):
        """{b:2,a:1} and {a:1,b:2} serialize to the same bytes."""
        assert canonicalize({"b": 2, "a": 1}) == canonicalize({"a": 1, "b": 2})
        assert canonicalize({"b": 2, "a": 1}) == b'{"a":1,"b":2}'

    def test_nested_objects_sorted(self):
        """Keys are sorted at every depth; arrays keep their order."""
        record = {"z": {"y": 1, "x": [3, {"b": 0, "a": 0}, 1]}, "a": None}
        assert canonicalize(record) == b'{"a":null,"z":{"x":[3,{"a":0,"b":0},1],"y":1}}'

    def test_idempotent(self):
        """Canonicalizing a parsed canonical form gives the same bytes."""
        record = {"paymentRef": "PAY-1", "amount": 12.5, "flags": [True, False], "note": "ä€"}
        once = canonicalize(record)
        assert canonicalize(parse_canonical(once)) == once

    def test_no_whitespace(self):
        """No insignificant whitespace is emitted."""
        assert b" " not in canonicalize({"a": [1, 2], "b": {"c": "d"}})

    def test_utf8_not_escaped(self):
        """Non-ASCII text is emitted as UTF-8."""
        assert canonicalize({"name": "Zürich"}) == '{"name":"Zürich"}'.encode("utf-8")

    def test_code_point_order(self):
        """Uppercase sorts before lowercase."""
        assert canonicalize({"b": 1, "B": 2, "a": 3}) == b'{"B":2,"a":3,"b":1}'

    def test_rejects_nan(self):
        """NaN has no JSON representation."""
        with pytest.raises(ValueError):
            canonicalize({"x": math.nan})

    def test_rejects_unsupported_type(self):
        """Bytes are not JSON values."""
        with pytest.raises(TypeError):
            canonicalize({"x": b"raw"})

    def test_parse_matches_json(self):
        """parse_canonical is plain JSON parsing."""
        assert parse_canonical(b'{"a":[1,2]}') == json.loads('{"a":[1,2]}')


class TestFingerprint:
    """Test RFC 7638 thumbprints."""

    def test_thumbprint_input_layout(self):
        """Hash input is the four required members in lexicographic order."""
        expected = (
            '{"crv":"P-256","kty":"EC",'
            '"x":"MKBCTNIcKUSDii11ySs3526iDZ8AiTo7Tu6KPAqv7D4",'
            '"y":"4Etl6SRW2YiLUrN5vfvVHuhp7x8PxltmWWlbbM4IFyM"}'
        ).encode("ascii")
        assert thumbprint_input(RFC7517_EC_JWK) == expected

    def test_fingerprint_is_sha256_b64url(self):
        """Fingerprint is unpadded base64url SHA-256 of the hash input."""
        digest = hashlib.sha256(thumbprint_input(RFC7517_EC_JWK)).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

        result = fingerprint(RFC7517_EC_JWK)
        assert result == expected
        assert len(result) == 43

    def test_extra_members_ignored(self):
        """Optional members do not change the fingerprint."""
        bare = {k: RFC7517_EC_JWK[k] for k in ("kty", "crv", "x", "y")}
        assert fingerprint(RFC7517_EC_JWK) == fingerprint(bare)

    def test_member_order_ignored(self):
        """Member order does not change the fingerprint."""
        reordered = dict(reversed(list(RFC7517_EC_JWK.items())))
        assert fingerprint(reordered) == fingerprint(RFC7517_EC_JWK)

    def test_key_object_and_jwk_agree(self):
        """A key object and its JWK have the same fingerprint."""
        public_key = jwk_to_public_key(RFC7517_EC_JWK)
        assert fingerprint(public_key) == fingerprint(RFC7517_EC_JWK)

    def test_distinct_keys(self, keypair, other_keypair):
        """Different keys have different fingerprints."""
        assert keypair.fingerprint != other_keypair.fingerprint

    def test_rejects_non_ec(self):
        """Only EC JWKs are supported."""
        with pytest.raises(ValueError):
            fingerprint({"kty": "RSA", "n": "AQAB", "e": "AQAB"})

    def test_rejects_missing_member(self):
        """All required members must be present."""
        jwk = dict(RFC7517_EC_JWK)
        del jwk["x"]
        with pytest.raises(ValueError, match="missing"):
            fingerprint(jwk)
