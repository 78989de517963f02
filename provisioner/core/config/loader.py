"""
Catalog loader — reads provision.yml into catalog models.

This is the primary entry point for loading the step catalog.
It reads YAML, validates against Pydantic schemas, and returns
typed catalog objects.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from provisioner.core.errors import ConfigError
from provisioner.core.models.catalog import Catalog

logger = logging.getLogger(__name__)

# Default catalog filename
CATALOG_FILE = "provision.yml"
CATALOG_ENV = "PROVISION_CATALOG"


def find_catalog_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provision.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CATALOG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def resolve_catalog_path(path: Path | None = None) -> Path:
    """Explicit path, then $PROVISION_CATALOG, then a search upward.

    Raises:
        ConfigError: If no catalog can be located.
    """
    if path is None and os.environ.get(CATALOG_ENV):
        path = Path(os.path.expanduser(os.environ[CATALOG_ENV]))
    if path is None:
        path = find_catalog_file()
    if path is None:
        raise ConfigError(
            f"No {CATALOG_FILE} found. "
            f"Create one, set ${CATALOG_ENV}, or pass --catalog."
        )
    if not path.is_file():
        raise ConfigError(f"Catalog file not found: {path}")
    return path


def _format_validation_error(e: ValidationError) -> str:
    lines = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        lines.append(f"  {loc}: {err['msg']}")
    return "\n".join(lines)


def load_catalog(path: Path | None = None) -> Catalog:
    """Load and validate the step catalog.

    Args:
        path: Explicit path to provision.yml. If None, uses the
              environment or searches upward.

    Returns:
        Validated Catalog model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    path = resolve_catalog_path(path)
    logger.debug("Loading catalog from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        catalog = Catalog.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid catalog {path}:\n{_format_validation_error(e)}") from e

    logger.info("Loaded catalog %s with %d steps", path, len(catalog.steps))
    return catalog
