"""Custom field normalization.

Device42 returns custom fields as a list of {key, value, notes} objects
and accepts them back either as a bulk "key:value,key:value" string (on
create) or as one key/value pair per request (on update). This module
converts between the list form, a key -> FieldValue mapping, and the bulk
string.

KNOWN LIMITATIONS:
- The bulk format defines no escaping. A "," anywhere or a ":" inside a
  key cannot be represented; build_bulk_payload refuses such mappings.
- There is no removal path. Keys dropped from a declaration stay on the
  remote resource; removed_fields only reports them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .models import CustomFieldRecord, CustomFieldScalar
from .values import FieldValue, render_scalar

logger = logging.getLogger(__name__)

CustomFieldMapping = dict[str, FieldValue]

PAIR_SEPARATOR = ","
KEY_VALUE_SEPARATOR = ":"


class BulkPayloadError(ValueError):
    """Raised when a mapping cannot be expressed as a bulk payload."""

    pass


def flatten(records: Iterable[CustomFieldRecord]) -> CustomFieldMapping:
    """Collapse the remote list form into a mapping.

    The API defines no duplicate-key policy; the last occurrence wins.
    """
    out: CustomFieldMapping = {}
    for record in records:
        if record.key in out:
            logger.debug("Duplicate custom field key, keeping last", extra={"key": record.key})
        out[record.key] = FieldValue.from_json(record.value)
    return out


def build_bulk_payload(fields: Mapping[str, CustomFieldScalar]) -> str:
    """Serialize declared custom fields as comma-separated key:value pairs.

    Keys are sorted so the payload is deterministic.

    Raises:
        BulkPayloadError: If a key or value cannot be represented.
    """
    pairs: list[str] = []
    for key in sorted(fields):
        value = render_scalar(fields[key])
        if PAIR_SEPARATOR in key or KEY_VALUE_SEPARATOR in key:
            raise BulkPayloadError(f"custom field key {key!r} contains ',' or ':'")
        if PAIR_SEPARATOR in value:
            raise BulkPayloadError(f"custom field {key!r} has a value containing ','")
        pairs.append(f"{key}{KEY_VALUE_SEPARATOR}{value}")
    return PAIR_SEPARATOR.join(pairs)


def parse_bulk_payload(payload: str) -> list[CustomFieldRecord]:
    """Parse a bulk payload back into list form.

    Each pair is split on its first ":", so values may contain ":".

    Raises:
        BulkPayloadError: If a pair has no ":" or an empty key.
    """
    records: list[CustomFieldRecord] = []
    if not payload:
        return records
    for pair in payload.split(PAIR_SEPARATOR):
        key, sep, value = pair.partition(KEY_VALUE_SEPARATOR)
        if not sep or not key:
            raise BulkPayloadError(f"malformed bulk field pair: {pair!r}")
        records.append(CustomFieldRecord(key=key, value=value))
    return records


def to_plain(fields: Mapping[str, FieldValue]) -> dict[str, str | None]:
    """Render a mapping as canonical text, e.g. for logging or comparison."""
    return {key: value.text for key, value in fields.items()}


def changed_fields(
    desired: Mapping[str, CustomFieldScalar],
    observed: Mapping[str, FieldValue],
) -> dict[str, str]:
    """Return the declared fields whose value differs from the observed one.

    Keys missing remotely count as changed. Keys only present remotely are
    ignored: they are out-of-band fields this tool does not manage.

    Returns:
        Mapping of key -> rendered desired value, one entry per write needed.
    """
    changes: dict[str, str] = {}
    for key, value in desired.items():
        current = observed.get(key)
        if current is not None and current.matches(value):
            continue
        logger.debug(
            "Change to custom field",
            extra={
                "key": key,
                "old_value": current.text if current is not None else None,
                "new_value": render_scalar(value),
            },
        )
        changes[key] = render_scalar(value)
    return changes


def removed_fields(
    desired: Mapping[str, CustomFieldScalar],
    previous: Mapping[str, object],
) -> list[str]:
    """Keys present in a previous declaration or observation but no longer desired."""
    return sorted(key for key in previous if key not in desired)
