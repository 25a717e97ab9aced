"""Decode OTLP/JSON profiles export requests into a Record.

Field names are accepted in lowerCamelCase (the OTLP/JSON mapping) and in
the proto snake_case form. 64-bit integers may arrive as JSON numbers or as
decimal strings. Anything that does not have the expected shape raises
DecodeError with the JSON path of the offending value.
"""
from __future__ import annotations

import base64
import binascii
import gzip
import json
import logging
import re

from profdump.errors import DecodeError
from profdump.models import (
    AnyValue, Attribute, Dictionary, Function, KeyValue, Line, Location, Mapping,
    Profile, Record, ResourceProfiles, Sample, ScopeProfiles, Stack, ValueKind, ValueType,
)

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
PROFILE_ID_LEN = 16
UINT64_LIMIT = 1 << 64

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def decode_payload(payload: str | bytes | dict) -> Record:
    """Decode a JSON document (text, bytes, gzip bytes or parsed dict)."""
    if isinstance(payload, (bytes, bytearray)):
        data = bytes(payload)
        if data[:2] == GZIP_MAGIC:
            try:
                data = gzip.decompress(data)
            except (OSError, EOFError) as e:
                raise DecodeError(f"invalid gzip payload: {e}") from e
        try:
            payload = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"payload is not UTF-8: {e}") from e
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise DecodeError(f"payload is not valid JSON: {e}") from e
    return decode_request(payload)


def decode_request(obj: dict) -> Record:
    """Decode a parsed ExportProfilesServiceRequest."""
    _require_object(obj, "$")
    resource_items = _list(obj, "resourceProfiles", "$")
    raw_dictionary = _get(obj, "dictionary")
    if raw_dictionary is None:
        if resource_items:
            raise DecodeError("missing dictionary", "$")
        dictionary = Dictionary()
    else:
        dictionary = _decode_dictionary(raw_dictionary, "$.dictionary")

    resources = tuple(
        _decode_resource_profiles(item, f"$.resourceProfiles[{i}]")
        for i, item in enumerate(resource_items)
    )
    logger.debug(
        "Decoded record: %d resource profiles, %d strings, %d locations",
        len(resources), len(dictionary.string_table), len(dictionary.location_table),
    )
    return Record(dictionary=dictionary, resource_profiles=resources)


# ── Field access ──────────────────────────────────────────────────────────────

def _snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def _get(obj: dict, name: str, *aliases: str):
    for key in (name, _snake(name)) + aliases:
        if key in obj:
            return obj[key]
    return None


def _require_object(value, path: str) -> dict:
    if not isinstance(value, dict):
        raise DecodeError(f"expected an object, got {_type_name(value)}", path)
    return value


def _type_name(value) -> str:
    if value is None:
        return "null"
    return type(value).__name__


def _list(obj: dict, name: str, path: str, *aliases: str) -> list:
    value = _get(obj, name, *aliases)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"expected a list, got {_type_name(value)}", f"{path}.{name}")
    return value


def _to_int(value, path: str) -> int:
    # bool is an int subclass and never a valid integer field
    if isinstance(value, bool):
        raise DecodeError("expected an integer, got bool", path)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value, 10)
        except ValueError:
            pass
    raise DecodeError(f"expected an integer, got {value!r}", path)


def _uint64(value, path: str) -> int:
    number = _to_int(value, path)
    if not 0 <= number < UINT64_LIMIT:
        raise DecodeError(f"expected an unsigned 64-bit integer, got {number}", path)
    return number


def _int(obj: dict, name: str, path: str, *aliases: str) -> int:
    value = _get(obj, name, *aliases)
    if value is None:
        return 0
    return _uint64(value, f"{path}.{name}")


def _ints(obj: dict, name: str, path: str, convert=_uint64) -> tuple[int, ...]:
    return tuple(
        convert(v, f"{path}.{name}[{i}]")
        for i, v in enumerate(_list(obj, name, path))
    )


def _str(obj: dict, name: str, path: str) -> str:
    value = _get(obj, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodeError(f"expected a string, got {_type_name(value)}", f"{path}.{name}")
    return value


# ── Values ────────────────────────────────────────────────────────────────────

def _decode_any_value(obj, path: str) -> AnyValue:
    if obj is None:
        return AnyValue()
    _require_object(obj, path)

    value = _get(obj, "stringValue")
    if value is not None:
        if not isinstance(value, str):
            raise DecodeError("stringValue must be a string", path)
        return AnyValue(ValueKind.STRING, value)

    value = _get(obj, "boolValue")
    if value is not None:
        if not isinstance(value, bool):
            raise DecodeError("boolValue must be a boolean", path)
        return AnyValue(ValueKind.BOOL, value)

    value = _get(obj, "intValue")
    if value is not None:
        return AnyValue(ValueKind.INT, _to_int(value, f"{path}.intValue"))

    value = _get(obj, "doubleValue")
    if value is not None:
        return AnyValue(ValueKind.DOUBLE, _to_double(value, f"{path}.doubleValue"))

    value = _get(obj, "bytesValue")
    if value is not None:
        return AnyValue(ValueKind.BYTES, _b64(value, f"{path}.bytesValue"))

    value = _get(obj, "arrayValue")
    if value is not None:
        inner = _require_object(value, f"{path}.arrayValue")
        return AnyValue(ValueKind.ARRAY, tuple(
            _decode_any_value(item, f"{path}.arrayValue.values[{i}]")
            for i, item in enumerate(_list(inner, "values", f"{path}.arrayValue"))
        ))

    value = _get(obj, "kvlistValue")
    if value is not None:
        inner = _require_object(value, f"{path}.kvlistValue")
        return AnyValue(ValueKind.KVLIST, tuple(
            _decode_key_value(item, f"{path}.kvlistValue.values[{i}]")
            for i, item in enumerate(_list(inner, "values", f"{path}.kvlistValue"))
        ))
    return AnyValue()


def _to_double(value, path: str) -> float:
    if isinstance(value, bool):
        raise DecodeError("expected a number, got bool", path)
    if isinstance(value, (int, float)):
        return float(value)
    # proto3 JSON spells NaN and the infinities as strings
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise DecodeError(f"expected a number, got {value!r}", path)


def _b64(value, path: str) -> bytes:
    if not isinstance(value, str):
        raise DecodeError("expected base64 text", path)
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as e:
        raise DecodeError(f"invalid base64: {e}", path) from e


def _decode_key_value(obj, path: str) -> KeyValue:
    _require_object(obj, path)
    return KeyValue(key=_str(obj, "key", path),
                    value=_decode_any_value(_get(obj, "value"), f"{path}.value"))


def _decode_profile_id(value, path: str) -> bytes:
    """Profile IDs are hex in OTLP/JSON; base64 is accepted as a fallback."""
    if value is None or value == "":
        return bytes(PROFILE_ID_LEN)
    if not isinstance(value, str):
        raise DecodeError("profileId must be a string", path)
    raw = None
    if len(value) == PROFILE_ID_LEN * 2:
        try:
            raw = bytes.fromhex(value)
        except ValueError:
            raw = None
    if raw is None:
        raw = _b64(value, path)
    if len(raw) != PROFILE_ID_LEN:
        raise DecodeError(f"profileId must be {PROFILE_ID_LEN} bytes, got {len(raw)}", path)
    return raw


# ── Dictionary ────────────────────────────────────────────────────────────────

def _decode_dictionary(obj, path: str) -> Dictionary:
    _require_object(obj, path)
    strings = _get(obj, "stringTable")
    if strings is None:
        raise DecodeError("missing stringTable", path)
    if not isinstance(strings, list) or not all(isinstance(s, str) for s in strings):
        raise DecodeError("stringTable must be a list of strings", f"{path}.stringTable")

    return Dictionary(
        string_table=tuple(strings),
        attribute_table=tuple(
            _decode_attribute(item, f"{path}.attributeTable[{i}]")
            for i, item in enumerate(_list(obj, "attributeTable", path))
        ),
        function_table=tuple(
            _decode_function(item, f"{path}.functionTable[{i}]")
            for i, item in enumerate(_list(obj, "functionTable", path))
        ),
        mapping_table=tuple(
            _decode_mapping(item, f"{path}.mappingTable[{i}]")
            for i, item in enumerate(_list(obj, "mappingTable", path))
        ),
        location_table=tuple(
            _decode_location(item, f"{path}.locationTable[{i}]")
            for i, item in enumerate(_list(obj, "locationTable", path))
        ),
        stack_table=tuple(
            Stack(location_indices=_ints(_require_object(item, f"{path}.stackTable[{i}]"),
                                         "locationIndices", f"{path}.stackTable[{i}]"))
            for i, item in enumerate(_list(obj, "stackTable", path))
        ),
    )


def _decode_attribute(obj, path: str) -> Attribute:
    _require_object(obj, path)
    return Attribute(
        key_strindex=_int(obj, "keyStrindex", path),
        value=_decode_any_value(_get(obj, "value"), f"{path}.value"),
        unit_strindex=_int(obj, "unitStrindex", path),
    )


def _decode_function(obj, path: str) -> Function:
    _require_object(obj, path)
    return Function(
        name_strindex=_int(obj, "nameStrindex", path),
        system_name_strindex=_int(obj, "systemNameStrindex", path),
        filename_strindex=_int(obj, "filenameStrindex", path),
        start_line=_int(obj, "startLine", path),
    )


def _decode_mapping(obj, path: str) -> Mapping:
    _require_object(obj, path)
    return Mapping(
        filename_strindex=_int(obj, "filenameStrindex", path),
        memory_start=_int(obj, "memoryStart", path),
        memory_limit=_int(obj, "memoryLimit", path),
        file_offset=_int(obj, "fileOffset", path),
        attribute_indices=_ints(obj, "attributeIndices", path),
    )


def _decode_location(obj, path: str) -> Location:
    _require_object(obj, path)
    lines = []
    for i, item in enumerate(_list(obj, "lines", path, "line")):
        line_path = f"{path}.lines[{i}]"
        _require_object(item, line_path)
        lines.append(Line(
            function_index=_int(item, "functionIndex", line_path),
            line=_int(item, "line", line_path),
            column=_int(item, "column", line_path),
        ))
    return Location(
        mapping_index=_int(obj, "mappingIndex", path),
        address=_int(obj, "address", path),
        lines=tuple(lines),
        attribute_indices=_ints(obj, "attributeIndices", path),
    )


# ── Resource / scope / profile / sample ───────────────────────────────────────

def _decode_resource_profiles(obj, path: str) -> ResourceProfiles:
    _require_object(obj, path)
    resource = _get(obj, "resource") or {}
    _require_object(resource, f"{path}.resource")
    return ResourceProfiles(
        attributes=tuple(
            _decode_key_value(item, f"{path}.resource.attributes[{i}]")
            for i, item in enumerate(_list(resource, "attributes", f"{path}.resource"))
        ),
        schema_url=_str(obj, "schemaUrl", path),
        scope_profiles=tuple(
            _decode_scope_profiles(item, f"{path}.scopeProfiles[{i}]")
            for i, item in enumerate(_list(obj, "scopeProfiles", path))
        ),
    )


def _decode_scope_profiles(obj, path: str) -> ScopeProfiles:
    _require_object(obj, path)
    scope = _get(obj, "scope") or {}
    _require_object(scope, f"{path}.scope")
    return ScopeProfiles(
        scope_name=_str(scope, "name", f"{path}.scope"),
        scope_version=_str(scope, "version", f"{path}.scope"),
        schema_url=_str(obj, "schemaUrl", path),
        profiles=tuple(
            _decode_profile(item, f"{path}.profiles[{i}]")
            for i, item in enumerate(_list(obj, "profiles", path))
        ),
    )


def _decode_value_type(value, path: str) -> ValueType:
    if value is None:
        return ValueType()
    # Older revisions of the protocol carried a list of sample types.
    if isinstance(value, list):
        if not value:
            return ValueType()
        if len(value) > 1:
            logger.debug("%s: %d value types, using the first", path, len(value))
        value = value[0]
        path = f"{path}[0]"
    _require_object(value, path)
    return ValueType(
        type_strindex=_int(value, "typeStrindex", path),
        unit_strindex=_int(value, "unitStrindex", path),
    )


def _decode_profile(obj, path: str) -> Profile:
    _require_object(obj, path)
    return Profile(
        profile_id=_decode_profile_id(_get(obj, "profileId"), f"{path}.profileId"),
        time_unix_nano=_int(obj, "timeUnixNano", path, "timeNanos"),
        duration_nano=_int(obj, "durationNano", path, "durationNanos"),
        sample_type=_decode_value_type(_get(obj, "sampleType"), f"{path}.sampleType"),
        period_type=_decode_value_type(_get(obj, "periodType"), f"{path}.periodType"),
        period=_int(obj, "period", path),
        dropped_attributes_count=_int(obj, "droppedAttributesCount", path),
        attribute_indices=_ints(obj, "attributeIndices", path),
        samples=tuple(
            _decode_sample(item, f"{path}.samples[{i}]")
            for i, item in enumerate(_list(obj, "samples", path, "sample"))
        ),
    )


def _decode_sample(obj, path: str) -> Sample:
    _require_object(obj, path)
    return Sample(
        stack_index=_int(obj, "stackIndex", path),
        timestamps_unix_nano=_ints(obj, "timestampsUnixNano", path),
        values=_ints(obj, "values", path, _to_int),
        attribute_indices=_ints(obj, "attributeIndices", path),
    )
