"""Pydantic models for declared resources and Device42 payloads.

These models provide:
1. Type-safe parsing of declared resources (YAML or Python callers)
2. Validation at the boundary (fail fast, fail loudly)
3. Strict decoding of the write envelope, lax decoding of read payloads
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, StrictInt, field_validator, model_validator

# Custom field values accepted in declarations
CustomFieldScalar = str | int | float | bool

VALID_DEVICE_TYPES = ("physical", "virtual", "blade", "cluster", "other")
VALID_PLAIN_TEXT = ("yes", "no")

# =============================================================================
# Wire Models
# =============================================================================


class ApiEnvelope(BaseModel):
    """The {code, msg} wrapper every write response carries.

    A non-zero code is an application-level failure even when the HTTP
    call itself succeeded.
    """

    model_config = {"extra": "ignore"}

    code: StrictInt
    msg: list[Any]

    @property
    def ok(self) -> bool:
        return self.code == 0


class CustomFieldRecord(BaseModel):
    """One entry of the remote custom_fields list."""

    model_config = {"extra": "ignore"}

    key: Annotated[str, Field(min_length=1)]
    value: Any = None
    notes: Any = None


class RawDevice(BaseModel):
    """Device read payload. Only the fields the reconciler uses are typed."""

    model_config = {"extra": "allow"}

    id: int | None = None
    device_id: int | None = None
    name: str | None = None
    type: str | None = None
    custom_fields: list[Any] | None = None


class RawPassword(BaseModel):
    """Password entry of the /1.0/passwords/ listing."""

    model_config = {"extra": "allow"}

    id: int | None = None
    username: str | None = None
    password: str | None = None
    label: str | None = None
    category: Any = None
    device: Any = None
    appcomp: Any = None
    notes: str | None = None
    custom_fields: list[Any] | None = None


# =============================================================================
# Declared Resources
# =============================================================================


class ResourceSpec(BaseModel):
    """Base declaration with the custom field bag shared by all kinds.

    Only the subclasses are declarable; validating the base itself fails.
    """

    model_config = {"extra": "forbid", "frozen": True, "populate_by_name": True}

    custom_fields: dict[str, CustomFieldScalar] = Field(
        default_factory=dict, alias="customFields"
    )

    @field_validator("custom_fields")
    @classmethod
    def validate_custom_field_keys(
        cls, v: dict[str, CustomFieldScalar]
    ) -> dict[str, CustomFieldScalar]:
        for key in v:
            if not key.strip():
                raise ValueError("custom field keys cannot be blank")
        return v

    @model_validator(mode="after")
    def reject_base_declaration(self) -> ResourceSpec:
        if type(self) is ResourceSpec:
            raise ValueError("declare a DeviceSpec or PasswordSpec, not a bare ResourceSpec")
        return self

    @property
    def kind(self) -> str:
        raise NotImplementedError("Subclasses must implement kind")

    @property
    def identity(self) -> str:
        """Human-readable identity used in logs and errors."""
        raise NotImplementedError("Subclasses must implement identity")


class DeviceSpec(ResourceSpec):
    """Declared device."""

    name: Annotated[str, Field(min_length=1)]
    device_type: str = Field("virtual", alias="deviceType")

    @field_validator("device_type")
    @classmethod
    def validate_device_type(cls, v: str) -> str:
        if v not in VALID_DEVICE_TYPES:
            raise ValueError(f"device_type must be one of {list(VALID_DEVICE_TYPES)}")
        return v

    @property
    def kind(self) -> str:
        return "device"

    @property
    def identity(self) -> str:
        return self.name


class PasswordSpec(ResourceSpec):
    """Declared credential record."""

    username: Annotated[str, Field(min_length=1)]
    password: Annotated[str, Field(min_length=1, repr=False)]
    label: str = ""
    category: str = ""
    device: str = ""
    appcomp: str = ""
    notes: str = ""
    plain_text: str = Field("yes", alias="plainText")

    @field_validator("plain_text")
    @classmethod
    def validate_plain_text(cls, v: str) -> str:
        if v not in VALID_PLAIN_TEXT:
            raise ValueError(f"plain_text must be one of {list(VALID_PLAIN_TEXT)}")
        return v

    @property
    def kind(self) -> str:
        return "password"

    @property
    def identity(self) -> str:
        return f"{self.username}@{self.label}" if self.label else self.username


class ResourceSet(BaseModel):
    """All resources declared in one file."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    devices: list[DeviceSpec] = Field(default_factory=list)
    passwords: list[PasswordSpec] = Field(default_factory=list)

    @field_validator("devices")
    @classmethod
    def validate_unique_device_names(cls, v: list[DeviceSpec]) -> list[DeviceSpec]:
        names = [d.name for d in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate device names: {duplicates}")
        return v

    @field_validator("passwords")
    @classmethod
    def validate_unique_password_identities(cls, v: list[PasswordSpec]) -> list[PasswordSpec]:
        identities = [(p.username, p.label) for p in v]
        duplicates = sorted({i for i in identities if identities.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate username/label pairs: {duplicates}")
        return v
