"""Index-validated lookups into one record's dictionary tables.

A Resolver is built once per record and handed to the filters and the
renderer. It never caches and never mutates the dictionary, so one instance
can be shared by threads and a fresh one costs nothing.
"""
from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from profdump.errors import IndexOutOfRange
from profdump.models import (
    Attribute, Dictionary, Function, Location, Mapping, Stack, ValueType,
)

T = TypeVar("T")

# Location attribute naming the unwinder that produced the frame.
FRAME_TYPE_KEY = "profile.frame.type"
UNKNOWN_FRAME_TYPE = "unknown"


def _at(table: Sequence[T], index: int, name: str) -> T:
    # Negative offsets are malformed, not "from the end".
    if index < 0 or index >= len(table):
        raise IndexOutOfRange(name, index, len(table))
    return table[index]


class Resolver:
    """Dereference table indices of a single record."""

    def __init__(self, dictionary: Dictionary) -> None:
        self.dictionary = dictionary

    # ── Raw table entries ──────────────────────────────────────────────

    def string(self, index: int) -> str:
        """Return the string table entry at ``index``, untouched."""
        return _at(self.dictionary.string_table, index, "string")

    def attribute_entry(self, index: int) -> Attribute:
        return _at(self.dictionary.attribute_table, index, "attribute")

    def function_entry(self, index: int) -> Function:
        return _at(self.dictionary.function_table, index, "function")

    def mapping_entry(self, index: int) -> Mapping:
        return _at(self.dictionary.mapping_table, index, "mapping")

    def location(self, index: int) -> Location:
        return _at(self.dictionary.location_table, index, "location")

    def stack(self, index: int) -> Stack:
        return _at(self.dictionary.stack_table, index, "stack")

    # ── Resolved values ────────────────────────────────────────────────

    def attribute(self, index: int) -> tuple[str, str]:
        """Return ``(key, value)`` with the value in its string form."""
        entry = self.attribute_entry(index)
        return self.string(entry.key_strindex), entry.value.as_string()

    def attributes(self, indices: Iterable[int]) -> list[tuple[str, str]]:
        return [self.attribute(i) for i in indices]

    def function(self, index: int) -> tuple[str, str]:
        """Return ``(name, filename)`` of a function."""
        entry = self.function_entry(index)
        return self.string(entry.name_strindex), self.string(entry.filename_strindex)

    def mapping(self, index: int) -> str:
        """Return the filename of a mapping."""
        return self.string(self.mapping_entry(index).filename_strindex)

    def value_type(self, value_type: ValueType) -> tuple[str, str]:
        """Return ``(type, unit)`` of a sample or period type."""
        return (self.string(value_type.type_strindex),
                self.string(value_type.unit_strindex))

    def stack_frames(self, stack_index: int) -> tuple[tuple[int, Location], ...]:
        """Return ``(location_index, location)`` pairs of a stack in stored order.

        The call direction is not self-describing in the record, so the
        order is kept exactly as it is in the stack table.
        """
        stack = self.stack(stack_index)
        return tuple((i, self.location(i)) for i in stack.location_indices)

    def location_attribute(self, location: Location, key: str) -> str | None:
        """Value of the first attribute of ``location`` named ``key``."""
        for index in location.attribute_indices:
            entry = self.attribute_entry(index)
            if self.string(entry.key_strindex) == key:
                return entry.value.as_string()
        return None

    def frame_type(self, location: Location) -> str:
        frame_type = self.location_attribute(location, FRAME_TYPE_KEY)
        return UNKNOWN_FRAME_TYPE if frame_type is None else frame_type
