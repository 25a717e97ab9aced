"""Admission predicates applied while walking a record.

Each predicate guards one traversal level and rejecting skips everything
below it: a resource, a whole profile, or a single frame.
"""
from __future__ import annotations

from typing import Iterable

from profdump.config import DumpConfig
from profdump.models import KeyValue

CONTAINER_ID_KEY = "container.id"

SKIP_NO_CONTAINER_ID = "no container.id"
SKIP_SAMPLE_TYPE = "sample type not admitted"


def container_id(attributes: Iterable[KeyValue]) -> str | None:
    """String form of the first ``container.id`` resource attribute."""
    for kv in attributes:
        if kv.key == CONTAINER_ID_KEY:
            return kv.value.as_string()
    return None


def admit_resource(config: DumpConfig, attributes: Iterable[KeyValue]) -> bool:
    if not config.ignore_profiles_without_container_id:
        return True
    return bool(container_id(attributes))


def admit_sample_type(config: DumpConfig, sample_type: str) -> bool:
    if not config.filter_sample_types:
        return True
    return sample_type in config.filter_sample_types


def admit_frame_type(config: DumpConfig, frame_type: str) -> bool:
    if not config.export_stack_frame_types:
        return True
    return frame_type in config.export_stack_frame_types
