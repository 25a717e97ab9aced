"""Structured report produced by the engine and consumed by the formatters."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class SectionKind(str, Enum):
    RESOURCE = "resource"
    RESOURCE_SKIPPED = "resource_skipped"
    SCOPE = "scope"
    PROFILE = "profile"
    PROFILE_SKIPPED = "profile_skipped"
    PROFILE_ERROR = "profile_error"
    SAMPLE = "sample"
    FRAME = "frame"


# Kinds that never carry children; they show up as a single event.
LEAF_KINDS = frozenset({
    SectionKind.RESOURCE_SKIPPED,
    SectionKind.PROFILE_SKIPPED,
    SectionKind.PROFILE_ERROR,
    SectionKind.FRAME,
})


@dataclass
class Section:
    """One node of the report tree.

    ``fields`` holds the resolved scalars of the level in emission order,
    ``attributes`` the exported (key, value) pairs.
    """
    kind: SectionKind
    fields: dict = field(default_factory=dict)
    attributes: list[tuple[str, str]] = field(default_factory=list)
    children: list[Section] = field(default_factory=list)

    def walk(self, depth: int = 0) -> Iterator[tuple[int, Section]]:
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def find(self, kind: SectionKind) -> list[Section]:
        return [s for _, s in self.walk() if s.kind == kind]


class EventType(str, Enum):
    BEGIN = "begin"
    END = "end"
    ITEM = "item"


@dataclass(frozen=True)
class Event:
    """Flat form of a section boundary, for streaming consumers."""
    type: EventType
    section: Section
    depth: int


@dataclass
class Report:
    sections: list[Section] = field(default_factory=list)
    source: str = ""

    def walk(self) -> Iterator[tuple[int, Section]]:
        for section in self.sections:
            yield from section.walk()

    def find(self, kind: SectionKind) -> list[Section]:
        return [s for _, s in self.walk() if s.kind == kind]

    def counts(self) -> Counter:
        return Counter(s.kind for _, s in self.walk())

    def has_errors(self) -> bool:
        return any(s.kind == SectionKind.PROFILE_ERROR for _, s in self.walk())

    def iter_events(self) -> Iterator[Event]:
        """Yield BEGIN/END pairs around container sections, ITEM for leaves."""
        for section in self.sections:
            yield from _events(section, 0)


def _events(section: Section, depth: int) -> Iterator[Event]:
    if section.kind in LEAF_KINDS:
        yield Event(EventType.ITEM, section, depth)
        return
    yield Event(EventType.BEGIN, section, depth)
    for child in section.children:
        yield from _events(child, depth + 1)
    yield Event(EventType.END, section, depth)
