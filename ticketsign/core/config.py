"""
Configuration Management

Derivation constants, verifier policy, KMS coordinates and logging, read
from environment variables (or .env) through Pydantic Settings.
"""
import logging
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Key Derivation
    # ============================================================
    # Changing any of these re-keys every identity derived from a PRF secret.
    hkdf_salt_label: str = Field(
        "dosipas-hkdf-salt-v1",
        description="Label hashed with SHA-256 to form the public HKDF salt"
    )
    signing_domain: str = Field("dosipas-ecdsa-p256", description="HKDF info for the ECDSA P-256 scalar")
    encryption_domain: str = Field("dosipas-aes-gcm", description="HKDF info for the AES-GCM-256 key")
    prf_salt_label: str = Field("dosipas-prf-v1", description="Label hashed to form the authenticator PRF salt")

    # ============================================================
    # Verification
    # ============================================================
    signature_freshness_seconds: int = Field(
        10,
        description="Maximum age (and future skew) of signatureDate accepted by the verifier"
    )
    trusted_keys_path: Optional[str] = Field(None, description="Path to trusted_keys.yaml")

    # ============================================================
    # Cloud KMS (remote HSM signer)
    # ============================================================
    kms_endpoint: str = Field("https://cloudkms.googleapis.com", description="KMS REST endpoint")
    kms_project: Optional[str] = Field(None, description="GCP project (required for the KMS signer)")
    kms_location: str = Field("europe-west1", description="KMS location")
    kms_keyring: str = Field("dosipas-keyring", description="KMS key ring")
    kms_key: str = Field("dosipas-level1-signing", description="KMS key name")
    kms_key_version: str = Field("1", description="KMS key version")
    kms_access_token: Optional[str] = Field(
        None,
        description="Static OAuth2 bearer token; overrides Google credentials when set"
    )
    kms_credentials_file: Optional[str] = Field(
        None,
        description="Service account JSON key for KMS (default: application default credentials)"
    )
    kms_timeout_seconds: float = Field(10.0, description="Timeout for a single KMS request")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )
