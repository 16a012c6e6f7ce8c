"""
Cloud KMS Signer

Signs with an HSM-protected ECDSA P-256 key through the Cloud KMS REST API.
KMS expects a pre-hashed SHA-256 digest; the digest is computed here.

Endpoints used:
    POST {endpoint}/v1/{keyVersion}:asymmetricSign   {"digest": {"sha256": "<b64>"}}
    GET  {endpoint}/v1/{keyVersion}/publicKey

Authentication: a static bearer token (KMS_ACCESS_TOKEN) when configured,
otherwise Google credentials (a service account key file or application
default credentials) refreshed whenever they expire.

No retries: callers apply their own retry and timeout policy around sign().
"""

import asyncio
import base64
import binascii
import hashlib
import logging
from typing import Optional

import google.auth
import google.auth.exceptions
import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from google.auth.credentials import Credentials
from google.auth.transport import requests as google_requests
from google.oauth2 import service_account

from ticketsign.core.config import Settings, get_settings
from ticketsign.core.signing.der import der_to_p1363, p1363_to_der
from ticketsign.core.signing.errors import MalformedSignature, SigningError
from ticketsign.core.signing.keys import public_key_to_spki_der

logger = logging.getLogger(__name__)

KMS_SCOPES = ["https://www.googleapis.com/auth/cloudkms"]


def key_version_name(
    project: str,
    location: str,
    keyring: str,
    key: str,
    version: str,
) -> str:
    """Full resource name of a KMS key version."""
    return (
        f"projects/{project}/locations/{location}/keyRings/{keyring}"
        f"/cryptoKeys/{key}/cryptoKeyVersions/{version}"
    )


class CloudKmsSigner:
    """
    Remote HSM signer backed by Cloud KMS.

    One request in flight per call. The only shared state is the cached
    Google credentials object, refreshed in place when it expires.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        credentials: Optional[Credentials] = None,
    ):
        """
        Initialize the signer.

        Args:
            settings: Settings with kms_* values (default: global settings)
            access_token: Static OAuth2 bearer token (default: settings.kms_access_token)
            transport: Optional httpx transport (tests inject httpx.MockTransport)
            credentials: Google credentials used when no static token is set
                (default: loaded on first use from kms_credentials_file or
                application default credentials)

        Raises:
            ValueError: If kms_project is not configured
        """
        settings = settings or get_settings()
        if not settings.kms_project:
            raise ValueError("KMS_PROJECT environment variable is required")

        self.key_version = key_version_name(
            settings.kms_project,
            settings.kms_location,
            settings.kms_keyring,
            settings.kms_key,
            settings.kms_key_version,
        )
        self.base_url = settings.kms_endpoint.rstrip('/')
        self.timeout = settings.kms_timeout_seconds
        self._access_token = access_token or settings.kms_access_token
        self._credentials = credentials
        self._credentials_file = settings.kms_credentials_file
        self._transport = transport

    def __repr__(self) -> str:
        return f"CloudKmsSigner({self.key_version!r})"

    def _load_credentials(self) -> Credentials:
        if self._credentials_file:
            return service_account.Credentials.from_service_account_file(
                self._credentials_file, scopes=KMS_SCOPES
            )
        credentials, _ = google.auth.default(scopes=KMS_SCOPES)
        return credentials

    def _refreshed_token(self) -> str:
        """Blocking: load credentials once, refresh them when expired."""
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            self._credentials.refresh(google_requests.Request())
            logger.info(f"Refreshed KMS credentials for {self.key_version}")
        return self._credentials.token

    async def _bearer_token(self) -> str:
        """Static token if configured, otherwise a valid Google access token."""
        if self._access_token:
            return self._access_token
        try:
            return await asyncio.to_thread(self._refreshed_token)
        except (google.auth.exceptions.GoogleAuthError, OSError, ValueError) as e:
            logger.error(f"Could not obtain KMS credentials: {e}")
            raise SigningError(f"Could not obtain KMS credentials: {e}") from e

    @staticmethod
    def _headers(token: str) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def _request(self, method: str, path: str, json_data: Optional[dict] = None) -> dict:
        """Make one KMS request; all failures become SigningError."""
        url = f"{self.base_url}/v1/{path}"
        headers = self._headers(await self._bearer_token())

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.request(method, url, headers=headers, json=json_data)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                logger.error(f"KMS error {e.response.status_code} for {self.key_version}")
                raise SigningError(f"KMS returned HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                logger.error(f"KMS request failed: {e}")
                raise SigningError(f"KMS unreachable: {e}") from e
            except ValueError as e:
                raise SigningError(f"KMS returned invalid JSON: {e}") from e

    async def sign(self, data: bytes) -> bytes:
        """
        Sign data with the HSM key.

        Returns:
            Canonical DER ECDSA signature

        Raises:
            SigningError: If KMS is unreachable or returns no usable signature
        """
        digest = hashlib.sha256(data).digest()
        result = await self._request(
            "POST",
            f"{self.key_version}:asymmetricSign",
            {"digest": {"sha256": base64.b64encode(digest).decode("ascii")}},
        )

        signature_b64 = result.get("signature") if isinstance(result, dict) else None
        if not signature_b64:
            raise SigningError("KMS asymmetricSign returned no signature")

        try:
            der = base64.b64decode(signature_b64, validate=True)
            signature = p1363_to_der(der_to_p1363(der))
        except (binascii.Error, MalformedSignature) as e:
            raise SigningError(f"KMS returned a malformed signature: {e}") from e

        logger.info(f"Signed {len(data)} bytes with {self.key_version}")
        return signature

    async def get_public_key(self) -> bytes:
        """
        Fetch the HSM public key.

        Returns:
            SPKI DER bytes
        """
        result = await self._request("GET", f"{self.key_version}/publicKey")

        pem = result.get("pem") if isinstance(result, dict) else None
        if not pem:
            raise SigningError("KMS getPublicKey returned no PEM")

        try:
            public_key = serialization.load_pem_public_key(pem.encode("ascii"))
        except ValueError as e:
            raise SigningError(f"KMS returned an invalid public key: {e}") from e
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise SigningError(f"KMS key is not an EC key: {type(public_key).__name__}")

        return public_key_to_spki_der(public_key)
