"""Plain text report, delimited per resource, profile and sample for scanning by eye."""
from __future__ import annotations

from profdump.output.formatting import format_address, format_duration, format_time
from profdump.report import Event, EventType, Report, Section, SectionKind

RESOURCE_BEGIN = "--------------- New Resource Profile --------------"
RESOURCE_END = "-------------- End Resource Profile ---------------"
PROFILE_BEGIN = "------------------- New Profile -------------------"
PROFILE_END = "------------------- End Profile -------------------"
SAMPLE_BEGIN = "------------------- New Sample --------------------"
SAMPLE_END = "------------------- End Sample --------------------"
PROFILE_ATTRS_END = "~" * 48
SAMPLE_ATTRS_END = "-" * 51


def format_text(report: Report) -> str:
    """Render the whole report as one string ending in a newline."""
    lines: list[str] = []
    for event in report.iter_events():
        lines.extend(_event_lines(event))
    return "\n".join(lines) + "\n" if lines else ""


def _event_lines(event: Event) -> list[str]:
    section = event.section
    kind = section.kind

    if kind == SectionKind.RESOURCE:
        if event.type == EventType.BEGIN:
            return [RESOURCE_BEGIN] + _attribute_lines(section)
        return [RESOURCE_END, ""]

    if kind == SectionKind.RESOURCE_SKIPPED:
        return [RESOURCE_BEGIN,
                f"              SKIPPED ({section.fields['reason']})",
                RESOURCE_END, ""]

    if kind == SectionKind.SCOPE:
        if event.type == EventType.BEGIN:
            return _scope_lines(section)
        return []

    if kind == SectionKind.PROFILE:
        if event.type == EventType.BEGIN:
            return _profile_lines(section)
        return [PROFILE_END]

    if kind == SectionKind.PROFILE_SKIPPED:
        f = section.fields
        return [PROFILE_BEGIN,
                f"  ProfileID: {f['profile_id']}",
                f"              SKIPPED (sample type {f['sample_type']!r} not admitted)",
                PROFILE_END]

    if kind == SectionKind.PROFILE_ERROR:
        f = section.fields
        return [PROFILE_BEGIN,
                f"  ProfileID: {f['profile_id']}",
                f"              ERROR ({f['error']})",
                PROFILE_END]

    if kind == SectionKind.SAMPLE:
        if event.type == EventType.BEGIN:
            return _sample_lines(section)
        return [SAMPLE_END]

    if kind == SectionKind.FRAME:
        return [frame_line(section)]

    return []


def _attribute_lines(section: Section) -> list[str]:
    return [f"  {key}: {value}" for key, value in section.attributes]


def _scope_lines(section: Section) -> list[str]:
    name = section.fields["name"]
    version = section.fields["version"]
    if not name and not version:
        return []
    return [f"  Scope: {name} {version}".rstrip()]


def _profile_lines(section: Section) -> list[str]:
    f = section.fields
    lines = [
        PROFILE_BEGIN,
        f"  ProfileID: {f['profile_id']}",
        f"  Time: {format_time(f['time_unix_nano'])}",
        f"  Duration: {format_duration(f['duration_nano'])}",
        f"  PeriodType: [{f['period_type']}, {f['period_unit']}]",
        f"  Period: {f['period']}",
        f"  Dropped attributes count: {f['dropped_attributes_count']}",
        f"  SampleType: {f['sample_type']}",
    ]
    if section.attributes:
        lines.extend(_attribute_lines(section))
        lines.append(PROFILE_ATTRS_END)
    return lines


def _sample_lines(section: Section) -> list[str]:
    f = section.fields
    lines = [SAMPLE_BEGIN]
    for i, ts in enumerate(f["timestamps_unix_nano"]):
        lines.append(f"  Timestamp[{i}]: {ts} ({format_time(ts)})")
    for i, value in enumerate(f["values"]):
        lines.append(f"  Value[{i}]: {value}")
    if section.attributes:
        lines.extend(_attribute_lines(section))
        lines.append(SAMPLE_ATTRS_END)
    return lines


def frame_line(section: Section) -> str:
    f = section.fields
    if not f["resolved"]:
        return (f"Instrumentation: {f['frame_type']}: Function: "
                f"{format_address(f['address'])}, File: {f['mapping']}")
    return (f"Instrumentation: {f['frame_type']}, Function: {f['function']}, "
            f"File: {f['file']}, Line: {f['line']}, Column: {f['column']}")
