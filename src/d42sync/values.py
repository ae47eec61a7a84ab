"""Tagged representation of loosely typed remote values.

Device42 does not guarantee a consistent shape per field: the same
attribute may come back as null, a scalar, or a nested object depending
on the state of the resource. Every such value is wrapped in a
FieldValue at the decode boundary so that downstream code compares
canonical text instead of probing types.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

Scalar = str | int | float | bool


class FieldKind(str, Enum):
    """Variants of a decoded remote value."""

    NULL = "null"
    SCALAR = "scalar"
    OPAQUE = "opaque"


def render_scalar(value: Scalar) -> str:
    """Render a scalar the way the remote echoes form values back.

    Integral floats lose their fractional part (JSON numbers arrive as
    floats), booleans are lower-case.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class FieldValue:
    """A remote value tagged as null, scalar, or opaque blob."""

    kind: FieldKind
    raw: Any = None

    @classmethod
    def from_json(cls, raw: Any) -> FieldValue:
        if raw is None:
            return NULL
        if isinstance(raw, (str, int, float, bool)):
            return cls(FieldKind.SCALAR, raw)
        return cls(FieldKind.OPAQUE, raw)

    @classmethod
    def scalar(cls, value: Scalar) -> FieldValue:
        return cls(FieldKind.SCALAR, value)

    @property
    def is_null(self) -> bool:
        return self.kind is FieldKind.NULL

    @property
    def text(self) -> str | None:
        """Canonical string form used for comparisons, None for null."""
        if self.kind is FieldKind.NULL:
            return None
        if self.kind is FieldKind.SCALAR:
            return render_scalar(self.raw)
        return json.dumps(self.raw, sort_keys=True, separators=(",", ":"))

    def matches(self, desired: Scalar | None) -> bool:
        """Check whether a declared value equals this observed value.

        Null and the empty string are equivalent.
        """
        observed = self.text
        wanted = None if desired is None else render_scalar(desired)
        return (observed or "") == (wanted or "")

    def __str__(self) -> str:
        return self.text or ""


NULL = FieldValue(FieldKind.NULL)
