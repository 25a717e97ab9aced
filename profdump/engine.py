"""Rendering engine: walk a record and emit the structured report.

The walk is depth-first in stored order, Resource -> Scope -> Profile ->
Sample -> Frame. Filters are consulted before descending into a level and
the Resolver provides every display value. Nothing is reordered,
deduplicated or aggregated.
"""
from __future__ import annotations

import logging

from profdump.config import DumpConfig
from profdump.errors import DecodeError, IndexOutOfRange
from profdump.filters import (
    SKIP_NO_CONTAINER_ID, SKIP_SAMPLE_TYPE,
    admit_frame_type, admit_resource, admit_sample_type, container_id,
)
from profdump.models import (
    Dictionary, Location, Profile, Record, ResourceProfiles, Sample, ScopeProfiles,
)
from profdump.report import Report, Section, SectionKind
from profdump.resolver import Resolver

logger = logging.getLogger(__name__)

# Filename shown for an unresolved frame whose location has no mapping.
UNKNOWN_MAPPING = "unknown"


def render(record: Record, config: DumpConfig | None = None, source: str = "") -> Report:
    """Render one decoded record.

    Raises DecodeError if ``record`` is not a Record with a dictionary. Index
    errors never escape: each one replaces the offending profile with a
    PROFILE_ERROR section.
    """
    if not isinstance(record, Record):
        raise DecodeError(f"expected a Record, got {type(record).__name__}")
    if not isinstance(record.dictionary, Dictionary):
        raise DecodeError("record has no dictionary")
    if config is None:
        config = DumpConfig()

    resolver = Resolver(record.dictionary)
    report = Report(source=source)
    for i, rp in enumerate(record.resource_profiles):
        report.sections.append(_render_resource(resolver, config, i, rp))
    return report


def _render_resource(resolver: Resolver, config: DumpConfig, index: int,
                     rp: ResourceProfiles) -> Section:
    if not admit_resource(config, rp.attributes):
        logger.debug("Skipping resource profile %d: %s", index, SKIP_NO_CONTAINER_ID)
        return Section(SectionKind.RESOURCE_SKIPPED, fields={
            "index": index,
            "reason": SKIP_NO_CONTAINER_ID,
        })

    section = Section(SectionKind.RESOURCE, fields={
        "index": index,
        "container_id": container_id(rp.attributes) or "",
        "schema_url": rp.schema_url,
    })
    if config.export_resource_attributes:
        section.attributes = [(kv.key, kv.value.as_string()) for kv in rp.attributes]

    for scope in rp.scope_profiles:
        section.children.append(_render_scope(resolver, config, scope))
    return section


def _render_scope(resolver: Resolver, config: DumpConfig, scope: ScopeProfiles) -> Section:
    section = Section(SectionKind.SCOPE, fields={
        "name": scope.scope_name,
        "version": scope.scope_version,
        "schema_url": scope.schema_url,
    })
    for profile in scope.profiles:
        section.children.append(_render_profile_guarded(resolver, config, profile))
    return section


def _render_profile_guarded(resolver: Resolver, config: DumpConfig,
                            profile: Profile) -> Section:
    """Render a profile, turning an index error into an error section."""
    try:
        return _render_profile(resolver, config, profile)
    except IndexOutOfRange as e:
        logger.warning("Profile %s not rendered: %s", profile.profile_id.hex(), e)
        return Section(SectionKind.PROFILE_ERROR, fields={
            "profile_id": profile.profile_id.hex(),
            "error": str(e),
            "table": e.table,
            "index": e.index,
        })


def _render_profile(resolver: Resolver, config: DumpConfig, profile: Profile) -> Section:
    sample_type, sample_unit = resolver.value_type(profile.sample_type)
    profile_id = profile.profile_id.hex()

    if not admit_sample_type(config, sample_type):
        logger.debug("Skipping profile %s: sample type %r", profile_id, sample_type)
        return Section(SectionKind.PROFILE_SKIPPED, fields={
            "profile_id": profile_id,
            "sample_type": sample_type,
            "reason": SKIP_SAMPLE_TYPE,
        })

    period_type, period_unit = resolver.value_type(profile.period_type)
    section = Section(SectionKind.PROFILE, fields={
        "profile_id": profile_id,
        "time_unix_nano": profile.time_unix_nano,
        "duration_nano": profile.duration_nano,
        "period_type": period_type,
        "period_unit": period_unit,
        "period": profile.period,
        "dropped_attributes_count": profile.dropped_attributes_count,
        "sample_type": sample_type,
        "sample_unit": sample_unit,
    })
    if config.export_profile_attributes:
        section.attributes = resolver.attributes(profile.attribute_indices)

    for sample in profile.samples:
        section.children.append(_render_sample(resolver, config, sample))
    return section


def _render_sample(resolver: Resolver, config: DumpConfig, sample: Sample) -> Section:
    section = Section(SectionKind.SAMPLE, fields={
        "timestamps_unix_nano": list(sample.timestamps_unix_nano),
        "values": list(sample.values),
        "stack_index": sample.stack_index,
    })
    if config.export_sample_attributes:
        section.attributes = resolver.attributes(sample.attribute_indices)

    if config.export_stack_frames:
        for location_index, location in resolver.stack_frames(sample.stack_index):
            frame_type = resolver.frame_type(location)
            if not admit_frame_type(config, frame_type):
                continue
            section.children.extend(
                _render_frames(resolver, location_index, location, frame_type)
            )
    return section


def _render_frames(resolver: Resolver, location_index: int, location: Location,
                   frame_type: str) -> list[Section]:
    """One frame per line record, or a single raw frame when there are none."""
    if not location.lines:
        mapping = UNKNOWN_MAPPING
        if location.mapping_index > 0:
            mapping = resolver.mapping(location.mapping_index)
        return [Section(SectionKind.FRAME, fields={
            "location_index": location_index,
            "frame_type": frame_type,
            "resolved": False,
            "address": location.address,
            "mapping": mapping,
        })]

    frames = []
    for line in location.lines:
        function_name, filename = resolver.function(line.function_index)
        frames.append(Section(SectionKind.FRAME, fields={
            "location_index": location_index,
            "frame_type": frame_type,
            "resolved": True,
            "function": function_name,
            "file": filename,
            "line": line.line,
            "column": line.column,
        }))
    return frames


def render_payload(payload: str | bytes | dict, config: DumpConfig | None = None,
                   source: str = "") -> Report:
    """Decode an OTLP/JSON payload and render it. DecodeError propagates."""
    from profdump.decode import decode_payload
    return render(decode_payload(payload), config, source=source)
