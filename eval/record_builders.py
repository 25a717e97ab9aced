"""Helpers for building dictionary-encoded records in tests."""
from __future__ import annotations

from profdump.models import (
    AnyValue, Attribute, Dictionary, Function, KeyValue, Line, Location, Mapping,
    Profile, Record, ResourceProfiles, Sample, ScopeProfiles, Stack, ValueType,
)


class DictionaryBuilder:
    """Interns strings and appends table entries, returning their indices.

    Index 0 of the string table is "" and index 0 of the mapping table is a
    placeholder, so mapping index 0 keeps meaning "no mapping".
    """

    def __init__(self, strings: list[str] | None = None) -> None:
        self.strings: list[str] = list(strings) if strings is not None else [""]
        self.attributes: list[Attribute] = []
        self.functions: list[Function] = []
        self.mappings: list[Mapping] = [Mapping()]
        self.locations: list[Location] = []
        self.stacks: list[Stack] = []

    def s(self, text: str) -> int:
        if text in self.strings:
            return self.strings.index(text)
        self.strings.append(text)
        return len(self.strings) - 1

    def attr(self, key: str, value) -> int:
        self.attributes.append(Attribute(key_strindex=self.s(key), value=AnyValue.of(value)))
        return len(self.attributes) - 1

    def function(self, name: str, filename: str) -> int:
        self.functions.append(Function(name_strindex=self.s(name),
                                       filename_strindex=self.s(filename)))
        return len(self.functions) - 1

    def mapping(self, filename: str) -> int:
        self.mappings.append(Mapping(filename_strindex=self.s(filename)))
        return len(self.mappings) - 1

    def location(self, lines=(), mapping: int = 0, address: int = 0,
                 frame_type: str | None = None, attrs=()) -> int:
        indices = list(attrs)
        if frame_type is not None:
            indices.append(self.attr("profile.frame.type", frame_type))
        self.locations.append(Location(
            mapping_index=mapping,
            address=address,
            lines=tuple(Line(function_index=f, line=ln, column=col) for f, ln, col in lines),
            attribute_indices=tuple(indices),
        ))
        return len(self.locations) - 1

    def stack(self, *location_indices: int) -> int:
        self.stacks.append(Stack(location_indices=tuple(location_indices)))
        return len(self.stacks) - 1

    def value_type(self, type_: str, unit: str) -> ValueType:
        return ValueType(type_strindex=self.s(type_), unit_strindex=self.s(unit))

    def build(self) -> Dictionary:
        return Dictionary(
            string_table=tuple(self.strings),
            attribute_table=tuple(self.attributes),
            function_table=tuple(self.functions),
            mapping_table=tuple(self.mappings),
            location_table=tuple(self.locations),
            stack_table=tuple(self.stacks),
        )


def make_profile(sample_type: ValueType, samples=(), **kwargs) -> Profile:
    return Profile(sample_type=sample_type, samples=tuple(samples), **kwargs)


def make_sample(stack_index: int, timestamps=(), attrs=(), values=()) -> Sample:
    return Sample(stack_index=stack_index, timestamps_unix_nano=tuple(timestamps),
                  attribute_indices=tuple(attrs), values=tuple(values))


def make_resource(profiles, attributes: dict | None = None,
                  scope_name: str = "", scope_version: str = "") -> ResourceProfiles:
    return ResourceProfiles(
        attributes=tuple(KeyValue(k, AnyValue.of(v)) for k, v in (attributes or {}).items()),
        scope_profiles=(ScopeProfiles(scope_name=scope_name, scope_version=scope_version,
                                      profiles=tuple(profiles)),),
    )


def make_record(builder: DictionaryBuilder, *resources: ResourceProfiles) -> Record:
    return Record(dictionary=builder.build(), resource_profiles=tuple(resources))
