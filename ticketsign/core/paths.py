"""
Config file lookup for ticketsign.

Config files live in ./config at the repository root. Deployments can point
CONFIG_DIR at a private directory; anything missing there falls back to
the repository copy, and foo.yaml falls back to foo.example.yaml.

Usage:
    from ticketsign.core.paths import get_config_path

    keys_path = get_config_path("trusted_keys.yaml")
"""
import logging
import os
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

# ticketsign/core/paths.py -> repository root
_REPO_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_CONFIG_DIR = _REPO_ROOT / "config"

_EXAMPLE_SUFFIX = ".example.yaml"


def _config_dirs() -> Iterator[Path]:
    """CONFIG_DIR (read at call time so tests can patch it), then the repo config dir."""
    override = os.getenv("CONFIG_DIR")
    if override and Path(override) != _DEFAULT_CONFIG_DIR:
        yield Path(override)
    yield _DEFAULT_CONFIG_DIR


def _candidates(filename: str) -> Iterator[Path]:
    for directory in _config_dirs():
        yield directory / filename
        if filename.endswith(".yaml") and not filename.endswith(_EXAMPLE_SUFFIX):
            yield directory / (filename[:-len(".yaml")] + _EXAMPLE_SUFFIX)


def get_config_path(filename: str, required: bool = False) -> Optional[Path]:
    """
    Find a config file.

    Each directory is checked for filename and then its .example.yaml
    variant before moving on to the next directory.

    Args:
        filename: Config filename (e.g., "trusted_keys.yaml")
        required: Raise instead of returning None when nothing is found

    Returns:
        The first existing candidate, or None

    Raises:
        FileNotFoundError: If required and no candidate exists
    """
    searched = []
    for path in _candidates(filename):
        if path.exists():
            logger.debug(f"Using config {path}")
            return path
        searched.append(str(path))

    if required:
        raise FileNotFoundError(f"Config file '{filename}' not found (searched: {', '.join(searched)})")

    logger.debug(f"No config file '{filename}' found")
    return None
