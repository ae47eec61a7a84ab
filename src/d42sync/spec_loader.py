"""Loading of declared resources from YAML.

SECURITY: File size is checked before reading to avoid loading
arbitrarily large documents. Input validation is performed at the
boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import ResourceSet

logger = logging.getLogger(__name__)

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file


class SpecLoadError(Exception):
    """Raised when a resource file cannot be loaded or fails validation."""

    pass


def load_resources(spec_path: Path) -> ResourceSet:
    """Load and validate declared devices and passwords from YAML.

    Both a flat document and a Kubernetes-style wrapper
    (apiVersion/kind/metadata/spec) are accepted.

    Args:
        spec_path: Path of the YAML file.

    Returns:
        Validated resource set.

    Raises:
        SpecLoadError: If the file cannot be read or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    return parse_resources(content, source=str(spec_path))


def parse_resources(content: str, source: str = "<string>") -> ResourceSet:
    """Parse and validate a YAML document of declared resources.

    Raises:
        SpecLoadError: If the YAML is invalid or fails validation.
    """
    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {source}: {e}") from e

    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {source}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec") or {}
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {source}")
    else:
        spec_data = raw_data

    try:
        resources = ResourceSet.model_validate(spec_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}") from e

    logger.info(
        "Loaded %d devices and %d passwords from %s",
        len(resources.devices),
        len(resources.passwords),
        source,
    )
    return resources
