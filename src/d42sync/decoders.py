"""Response decoders.

Maps loosely typed Device42 JSON payloads into normalized records. The
write envelope is decoded strictly; everything nested or free-form is
decoded laxly and wrapped in FieldValue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .custom_fields import CustomFieldMapping, flatten
from .models import ApiEnvelope, CustomFieldRecord, RawDevice, RawPassword
from .values import NULL, FieldValue

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """Raised when a payload cannot be decoded at all."""

    pass


@dataclass
class DeviceRecord:
    """Normalized server-side state of a device."""

    id: int
    name: str
    device_type: str
    custom_fields: CustomFieldMapping = field(default_factory=dict)
    extras: dict[str, FieldValue] = field(default_factory=dict)


@dataclass
class PasswordRecord:
    """Normalized server-side state of a credential record."""

    id: int
    username: str
    password: str = field(repr=False)
    label: str = ""
    category: FieldValue = NULL
    device: FieldValue = NULL
    appcomp: FieldValue = NULL
    notes: str = ""
    custom_fields: CustomFieldMapping = field(default_factory=dict)
    extras: dict[str, FieldValue] = field(default_factory=dict)


def decode_envelope(raw: Any) -> ApiEnvelope:
    """Decode a write envelope strictly.

    Raises:
        pydantic.ValidationError: If code or msg is missing or mistyped.
    """
    return ApiEnvelope.model_validate(raw)


def decode_custom_fields(raw: list[Any] | None) -> list[CustomFieldRecord]:
    """Decode the custom_fields list, skipping entries without a usable key."""
    records: list[CustomFieldRecord] = []
    for entry in raw or []:
        try:
            records.append(CustomFieldRecord.model_validate(entry))
        except ValidationError:
            logger.warning("Skipping malformed custom field entry", extra={"entry": repr(entry)})
    return records


def decode_device(raw: dict[str, Any]) -> DeviceRecord:
    """Decode a /1.0/devices/id/{id}/ payload.

    Raises:
        DecodeError: If the payload carries no identifier.
    """
    try:
        device = RawDevice.model_validate(raw)
    except ValidationError as e:
        raise DecodeError(f"device payload is malformed: {e}") from e

    device_id = device.id if device.id is not None else device.device_id
    if device_id is None:
        raise DecodeError("device payload has neither id nor device_id")

    return DeviceRecord(
        id=device_id,
        name=device.name or "",
        device_type=device.type or "",
        custom_fields=flatten(decode_custom_fields(device.custom_fields)),
        extras=_extras(device.model_extra),
    )


def decode_passwords(raw: dict[str, Any]) -> list[PasswordRecord]:
    """Decode a /1.0/passwords/ listing into records.

    Entries that are not objects or carry no id are skipped.

    Raises:
        DecodeError: If passwords is present but not a list, or an entry is malformed.
    """
    entries = raw.get("passwords")
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise DecodeError(f"passwords must be a list, got {type(entries).__name__}")

    records: list[PasswordRecord] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("Skipping non-object password entry", extra={"entry": repr(entry)})
            continue
        try:
            password = RawPassword.model_validate(entry)
        except ValidationError as e:
            raise DecodeError(f"password payload is malformed: {e}") from e
        if password.id is None:
            logger.warning("Skipping password entry without id")
            continue
        records.append(
            PasswordRecord(
                id=password.id,
                username=password.username or "",
                password=password.password or "",
                label=password.label or "",
                category=FieldValue.from_json(password.category),
                device=FieldValue.from_json(password.device),
                appcomp=FieldValue.from_json(password.appcomp),
                notes=password.notes or "",
                custom_fields=flatten(decode_custom_fields(password.custom_fields)),
                extras=_extras(password.model_extra),
            )
        )
    return records


def _extras(extra: dict[str, Any] | None) -> dict[str, FieldValue]:
    return {key: FieldValue.from_json(value) for key, value in (extra or {}).items()}
