"""JSON output: the report tree as a dict, or a flat stream of events."""
from __future__ import annotations

import json

from profdump import __version__
from profdump.report import Event, EventType, Report, Section

SCHEMA_VERSION = "1.0"


def report_to_dict(report: Report) -> dict:
    """Produce a JSON-ready dict from a Report."""
    counts = report.counts()
    return {
        "schema_version": SCHEMA_VERSION,
        "generator": f"profdump {__version__}",
        "source": report.source,
        "summary": {kind.value: counts[kind] for kind in sorted(counts, key=lambda k: k.value)},
        "sections": [_section_to_dict(s) for s in report.sections],
    }


def _section_to_dict(section: Section) -> dict:
    out: dict = {
        "kind": section.kind.value,
        "fields": dict(section.fields),
    }
    if section.attributes:
        out["attributes"] = [{"key": k, "value": v} for k, v in section.attributes]
    if section.children:
        out["children"] = [_section_to_dict(c) for c in section.children]
    return out


def _event_to_dict(event: Event) -> dict:
    out: dict = {
        "event": event.type.value,
        "kind": event.section.kind.value,
        "depth": event.depth,
    }
    # END events only close a section; its data went out with BEGIN.
    if event.type != EventType.END:
        out["fields"] = dict(event.section.fields)
        if event.section.attributes:
            out["attributes"] = [{"key": k, "value": v} for k, v in event.section.attributes]
    return out


def format_json(report: Report) -> str:
    return json.dumps(report_to_dict(report), indent=2, ensure_ascii=False)


def format_events(report: Report) -> str:
    """One JSON object per line, one line per event."""
    lines = [json.dumps(_event_to_dict(e), ensure_ascii=False) for e in report.iter_events()]
    return "\n".join(lines) + "\n" if lines else ""
