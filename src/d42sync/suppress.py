"""Drift suppression for custom fields.

The remote side may carry custom fields this tool never declared, for
example ones added by hand or by discovery jobs. A mismatch under the
custom_fields namespace only counts as drift when the field is declared
locally. Anything else is suppressed and never written.

Paths outside the namespace are not subject to suppression.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .models import CustomFieldScalar
from .values import FieldValue

logger = logging.getLogger(__name__)

CUSTOM_FIELDS_NAMESPACE = "custom_fields"
CUSTOM_FIELDS_PREFIX = f"{CUSTOM_FIELDS_NAMESPACE}."


def field_path(key: str) -> str:
    """Full path of a custom field key, e.g. "custom_fields.env"."""
    return f"{CUSTOM_FIELDS_PREFIX}{key}"


def is_drift(field_key: str, desired: Mapping[str, CustomFieldScalar]) -> bool:
    """Decide whether a mismatch at field_key is real drift.

    Args:
        field_key: Field path, e.g. "custom_fields.env" or "device_type".
        desired: Declared custom fields.

    Returns:
        False when the path is a custom field not declared locally.
    """
    if not field_key.startswith(CUSTOM_FIELDS_PREFIX):
        return True
    return field_key[len(CUSTOM_FIELDS_PREFIX):] in desired


def drifted_paths(
    desired: Mapping[str, CustomFieldScalar],
    observed: Mapping[str, FieldValue],
) -> list[str]:
    """Custom field paths whose observed value differs from the declared one."""
    drifted: list[str] = []
    for key in sorted(set(desired) | set(observed)):
        path = field_path(key)
        if not is_drift(path, desired):
            continue
        current = observed.get(key)
        if current is None or not current.matches(desired[key]):
            drifted.append(path)
    return drifted


def suppressed_paths(
    desired: Mapping[str, CustomFieldScalar],
    observed: Mapping[str, FieldValue],
) -> list[str]:
    """Observed custom field paths ignored because they are not declared."""
    suppressed = [field_path(key) for key in sorted(observed) if key not in desired]
    if suppressed:
        logger.debug(
            "Drift suppressed for undeclared custom fields",
            extra={"paths": suppressed},
        )
    return suppressed
