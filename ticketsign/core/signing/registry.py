"""
Trusted Key Registry

Public keys addressed by their RFC 7638 fingerprint. Verifiers use it to
decide whether a signed payload comes from a known key.

Configuration format (config/trusted_keys.yaml):
```yaml
keys:
  - description: "Level 1 issuing key (KMS version 1)"
    public_key: "base64-encoded SPKI DER"
    enabled: true
```
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union
import yaml

from cryptography.hazmat.primitives.asymmetric import ec

from ticketsign.core.signing.keys import base64_to_public_key, jwk_to_public_key
from ticketsign.core.signing.thumbprint import fingerprint
from ticketsign.core.paths import get_config_path

logger = logging.getLogger(__name__)


@dataclass
class TrustedKey:
    """
    A trusted public key.

    Attributes:
        fingerprint: RFC 7638 thumbprint (registry key)
        public_key: P-256 public key
        description: Human-readable description
        enabled: Whether the key is currently accepted
    """
    fingerprint: str
    public_key: ec.EllipticCurvePublicKey
    description: str = ""
    enabled: bool = True


class KeyRegistry:
    """
    Registry of trusted public keys, indexed by fingerprint.

    Not locked: populate it before sharing it between threads.
    """

    def __init__(self):
        self._keys: Dict[str, TrustedKey] = {}
        self._loaded = False

    def register(
        self,
        public_key: Union[ec.EllipticCurvePublicKey, Dict[str, str]],
        description: str = "",
        enabled: bool = True,
    ) -> TrustedKey:
        """
        Add a key (object or JWK). Re-registering a key replaces its entry.

        Returns:
            The stored TrustedKey
        """
        if isinstance(public_key, dict):
            public_key = jwk_to_public_key(public_key)

        key_fingerprint = fingerprint(public_key)
        if key_fingerprint in self._keys:
            logger.info(f"Replacing trusted key {key_fingerprint}")

        trusted = TrustedKey(
            fingerprint=key_fingerprint,
            public_key=public_key,
            description=description,
            enabled=enabled,
        )
        self._keys[key_fingerprint] = trusted
        return trusted

    def get(self, key_fingerprint: str) -> Optional[TrustedKey]:
        """
        Get a key by fingerprint.

        Returns:
            TrustedKey if found and enabled, None otherwise
        """
        trusted = self._keys.get(key_fingerprint)
        if trusted and trusted.enabled:
            return trusted
        return None

    def get_by_key(
        self, public_key: Union[ec.EllipticCurvePublicKey, Dict[str, str]]
    ) -> Optional[TrustedKey]:
        """Find a key by its public key object or JWK."""
        try:
            return self.get(fingerprint(public_key))
        except ValueError:
            return None

    def remove(self, key_fingerprint: str) -> bool:
        """Remove a key. Returns True if it was present."""
        return self._keys.pop(key_fingerprint, None) is not None

    def list_fingerprints(self) -> List[str]:
        """Get list of all registered fingerprints."""
        return list(self._keys.keys())

    def __len__(self) -> int:
        return len(self._keys)

    def load_from_yaml(self, config_path: Path) -> None:
        """
        Load trusted keys from a YAML file.

        Args:
            config_path: Path to trusted_keys.yaml

        Raises:
            ValueError: If an entry is invalid
        """
        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Trusted keys config not found: {config_path}")
            self._loaded = True
            return

        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ValueError(f"{config_path} must be a mapping with a 'keys' list")
        entries = config.get("keys") or []
        if not isinstance(entries, list):
            raise ValueError(f"'keys' in {config_path} must be a list")

        for index, entry in enumerate(entries):
            try:
                public_key = base64_to_public_key(entry["public_key"])
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Failed to load trusted key #{index}: {e}")
                raise ValueError(f"Invalid trusted key entry #{index}: {e}") from e

            self.register(
                public_key,
                description=entry.get("description", ""),
                enabled=entry.get("enabled", True),
            )

        self._loaded = True
        logger.info(f"Loaded {len(self._keys)} trusted keys from {config_path}")

    @property
    def is_loaded(self) -> bool:
        """Check if registry has been loaded from configuration."""
        return self._loaded


def load_trusted_keys(config_path: Optional[Path] = None) -> KeyRegistry:
    """
    Build a registry from configuration.

    Args:
        config_path: Path to trusted_keys.yaml. If None, uses settings or get_config_path().

    Returns:
        The loaded registry (empty if no file is configured)
    """
    if config_path is None:
        from ticketsign.core.config import get_settings
        configured = get_settings().trusted_keys_path
        config_path = Path(configured) if configured else get_config_path("trusted_keys.yaml")

    registry = KeyRegistry()
    if config_path is None:
        logger.info("No trusted_keys.yaml found - registry is empty")
        return registry

    registry.load_from_yaml(config_path)
    return registry
