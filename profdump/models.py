"""Record data model: the dictionary tables and the resource/scope/profile/sample tree.

Every table is an ordered tuple and every cross reference is a plain integer
offset into one of them. Nothing here dereferences an index; that is the job
of :mod:`profdump.resolver`.
"""
from __future__ import annotations

import base64
import json
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class ValueKind(str, Enum):
    EMPTY = "empty"
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    DOUBLE = "double"
    BYTES = "bytes"
    ARRAY = "array"
    KVLIST = "kvlist"


@dataclass(frozen=True)
class AnyValue:
    """A typed attribute value.

    ``value`` holds a str, bool, int, float or bytes for the scalar kinds, a
    tuple of AnyValue for ARRAY and a tuple of KeyValue for KVLIST.
    """
    kind: ValueKind = ValueKind.EMPTY
    value: object = None

    @classmethod
    def of(cls, raw: object) -> AnyValue:
        """Wrap a plain Python value, picking the kind from its type."""
        if raw is None:
            return cls()
        if isinstance(raw, AnyValue):
            return raw
        # bool before int: bool is an int subclass
        if isinstance(raw, bool):
            return cls(ValueKind.BOOL, raw)
        if isinstance(raw, int):
            return cls(ValueKind.INT, raw)
        if isinstance(raw, float):
            return cls(ValueKind.DOUBLE, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        if isinstance(raw, (bytes, bytearray)):
            return cls(ValueKind.BYTES, bytes(raw))
        if isinstance(raw, dict):
            return cls(ValueKind.KVLIST, tuple(
                KeyValue(str(k), cls.of(v)) for k, v in raw.items()
            ))
        if isinstance(raw, (list, tuple)):
            return cls(ValueKind.ARRAY, tuple(cls.of(v) for v in raw))
        raise TypeError(f"unsupported attribute value type: {type(raw).__name__}")

    def as_raw(self) -> object:
        """Plain Python form, used for JSON output of composite values."""
        if self.kind == ValueKind.ARRAY:
            return [v.as_raw() for v in self.value]
        if self.kind == ValueKind.KVLIST:
            return {kv.key: kv.value.as_raw() for kv in self.value}
        if self.kind == ValueKind.BYTES:
            return base64.b64encode(self.value).decode("ascii")
        if self.kind == ValueKind.DOUBLE and not math.isfinite(self.value):
            return _format_double(self.value)
        return self.value

    def as_string(self) -> str:
        """String form of the value as the collector pdata library renders it."""
        if self.kind == ValueKind.EMPTY:
            return ""
        if self.kind == ValueKind.STRING:
            return self.value
        if self.kind == ValueKind.BOOL:
            return "true" if self.value else "false"
        if self.kind == ValueKind.INT:
            return str(self.value)
        if self.kind == ValueKind.DOUBLE:
            return _format_double(self.value)
        if self.kind == ValueKind.BYTES:
            return base64.b64encode(self.value).decode("ascii")
        return json.dumps(self.as_raw(), separators=(",", ":"), sort_keys=True,
                          ensure_ascii=False)


def _format_double(value: float) -> str:
    """Shortest round-trip form, fixed notation unless very small or very large."""
    if math.isnan(value):
        return "json: unsupported value: NaN"
    if math.isinf(value):
        return f"json: unsupported value: {'+' if value > 0 else '-'}Inf"
    magnitude = abs(value)
    if magnitude != 0 and (magnitude < 1e-6 or magnitude >= 1e21):
        text = repr(value)
        mantissa, _, exponent = text.partition("e")
        sign = exponent[0]
        digits = exponent[1:]
        if sign == "-" and len(digits) == 2 and digits[0] == "0":
            digits = digits[1:]
        return f"{mantissa}e{sign}{digits}"
    return format(Decimal(repr(value)).normalize(), "f")


@dataclass(frozen=True)
class KeyValue:
    key: str
    value: AnyValue = field(default_factory=AnyValue)


@dataclass(frozen=True)
class ValueType:
    """A (type, unit) pair of string table indices."""
    type_strindex: int = 0
    unit_strindex: int = 0


# ── Dictionary tables ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Attribute:
    key_strindex: int
    value: AnyValue = field(default_factory=AnyValue)
    unit_strindex: int = 0


@dataclass(frozen=True)
class Function:
    name_strindex: int = 0
    system_name_strindex: int = 0
    filename_strindex: int = 0
    start_line: int = 0


@dataclass(frozen=True)
class Mapping:
    """A loaded binary or module."""
    filename_strindex: int = 0
    memory_start: int = 0
    memory_limit: int = 0
    file_offset: int = 0
    attribute_indices: tuple[int, ...] = ()


@dataclass(frozen=True)
class Line:
    function_index: int = 0
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Location:
    """A point in a call stack.

    A location without lines is an unresolved native frame and is described by
    its mapping and raw address only. ``mapping_index == 0`` means no mapping.
    """
    mapping_index: int = 0
    address: int = 0
    lines: tuple[Line, ...] = ()
    attribute_indices: tuple[int, ...] = ()


@dataclass(frozen=True)
class Stack:
    location_indices: tuple[int, ...] = ()


@dataclass(frozen=True)
class Dictionary:
    """The lookup tables shared by every profile of one record."""
    string_table: tuple[str, ...] = ("",)
    attribute_table: tuple[Attribute, ...] = ()
    function_table: tuple[Function, ...] = ()
    mapping_table: tuple[Mapping, ...] = ()
    location_table: tuple[Location, ...] = ()
    stack_table: tuple[Stack, ...] = ()


# ── Resource / scope / profile / sample tree ──────────────────────────────────

@dataclass(frozen=True)
class Sample:
    stack_index: int = 0
    timestamps_unix_nano: tuple[int, ...] = ()
    values: tuple[int, ...] = ()
    attribute_indices: tuple[int, ...] = ()


@dataclass(frozen=True)
class Profile:
    profile_id: bytes = bytes(16)
    time_unix_nano: int = 0
    duration_nano: int = 0
    sample_type: ValueType = field(default_factory=ValueType)
    period_type: ValueType = field(default_factory=ValueType)
    period: int = 0
    dropped_attributes_count: int = 0
    attribute_indices: tuple[int, ...] = ()
    samples: tuple[Sample, ...] = ()


@dataclass(frozen=True)
class ScopeProfiles:
    scope_name: str = ""
    scope_version: str = ""
    schema_url: str = ""
    profiles: tuple[Profile, ...] = ()


@dataclass(frozen=True)
class ResourceProfiles:
    """Profiles reported by one process or pod.

    Resource attributes are carried inline, not through the attribute table.
    """
    attributes: tuple[KeyValue, ...] = ()
    schema_url: str = ""
    scope_profiles: tuple[ScopeProfiles, ...] = ()


@dataclass(frozen=True)
class Record:
    """One decoded submission."""
    dictionary: Dictionary = field(default_factory=Dictionary)
    resource_profiles: tuple[ResourceProfiles, ...] = ()
