"""Tests for the rendering engine: traversal, filtering and error scoping."""
import pytest

from profdump.config import DumpConfig
from profdump.engine import UNKNOWN_MAPPING, render
from profdump.errors import DecodeError
from profdump.models import Dictionary, Profile, Record, ValueType
from profdump.output.json_report import format_json
from profdump.output.text import format_text
from profdump.report import SectionKind

from record_builders import (
    DictionaryBuilder, make_profile, make_record, make_resource, make_sample,
)


# ── Helpers ─────────────────────────────────────────────────────────


def _events_record():
    """String table ["", "cpu", "events", "main.go"], one profile of type "events"."""
    b = DictionaryBuilder(["", "cpu", "events", "main.go"])
    fn = b.function("main", "main.go")
    loc = b.location(lines=[(fn, 10, 2)], frame_type="go")
    stack = b.stack(loc)
    profile = make_profile(ValueType(type_strindex=2, unit_strindex=0),
                           samples=[make_sample(stack, timestamps=[1000])])
    return make_record(b, make_resource([profile]))


def _mixed_record():
    """One sample whose stack holds a native frame, an inlined python frame and a kernel frame."""
    b = DictionaryBuilder()
    libc = b.mapping("libc.so.6")
    outer = b.function("outer", "app.py")
    inner = b.function("inner", "app.py")
    native = b.location(mapping=libc, address=0x7F00, frame_type="native")
    python = b.location(lines=[(inner, 20, 4), (outer, 10, 1)], frame_type="python")
    kernel = b.location(address=0x10, frame_type="kernel")
    stack = b.stack(native, python, kernel)
    cpu = b.value_type("cpu", "nanoseconds")
    profile = make_profile(cpu, samples=[make_sample(stack, timestamps=[1000, 2000])])
    return make_record(b, make_resource([profile], {"container.id": "c1"}))


def _frames(report):
    return [s.fields for s in report.find(SectionKind.FRAME)]


# ── Sample-type admission ───────────────────────────────────────────


def test_sample_type_admitted():
    report = render(_events_record(), DumpConfig(filter_sample_types=frozenset({"events"})))
    assert len(report.find(SectionKind.PROFILE)) == 1
    assert len(report.find(SectionKind.SAMPLE)) == 1


def test_sample_type_rejected_skips_whole_profile():
    report = render(_events_record(), DumpConfig(filter_sample_types=frozenset({"cpu"})))
    assert report.find(SectionKind.PROFILE) == []
    assert report.find(SectionKind.SAMPLE) == []
    skipped = report.find(SectionKind.PROFILE_SKIPPED)
    assert len(skipped) == 1
    assert skipped[0].fields["sample_type"] == "events"


def test_empty_sample_type_filter_admits_all():
    report = render(_events_record(), DumpConfig())
    assert len(report.find(SectionKind.PROFILE)) == 1


# ── Resource admission ──────────────────────────────────────────────


@pytest.mark.parametrize("attributes", [None, {"container.id": ""}, {"host.name": "h"}])
def test_resource_without_container_id_is_skipped(attributes):
    b = DictionaryBuilder()
    cpu = b.value_type("cpu", "ns")
    stack = b.stack()
    record = make_record(b, make_resource(
        [make_profile(cpu, samples=[make_sample(stack, timestamps=[1])])], attributes))
    report = render(record, DumpConfig(ignore_profiles_without_container_id=True))

    assert [s.kind for s in report.sections] == [SectionKind.RESOURCE_SKIPPED]
    assert report.sections[0].children == []
    assert report.find(SectionKind.PROFILE) == []
    assert report.find(SectionKind.SAMPLE) == []


def test_resource_skip_does_not_touch_dictionary():
    """A skipped resource is not walked, so its bad indices go unnoticed."""
    broken = make_profile(ValueType(type_strindex=99), samples=[make_sample(42)])
    record = Record(dictionary=Dictionary(), resource_profiles=(make_resource([broken]),))
    report = render(record, DumpConfig(ignore_profiles_without_container_id=True))
    assert report.counts()[SectionKind.RESOURCE_SKIPPED] == 1
    assert not report.has_errors()


def test_resource_with_container_id_is_rendered():
    report = render(_mixed_record(), DumpConfig(ignore_profiles_without_container_id=True))
    assert report.sections[0].kind == SectionKind.RESOURCE
    assert report.sections[0].fields["container_id"] == "c1"


# ── Frames ──────────────────────────────────────────────────────────


def test_unresolved_frame_uses_mapping_filename():
    frames = _frames(render(_mixed_record()))
    assert frames[0]["resolved"] is False
    assert frames[0]["mapping"] == "libc.so.6"
    assert frames[0]["address"] == 0x7F00
    assert frames[0]["frame_type"] == "native"


def test_unresolved_frame_without_mapping_uses_sentinel():
    frames = _frames(render(_mixed_record()))
    assert frames[-1]["mapping"] == UNKNOWN_MAPPING == "unknown"
    assert frames[-1]["frame_type"] == "kernel"


def test_one_frame_per_line_in_line_order():
    frames = _frames(render(_mixed_record()))
    python = [f for f in frames if f["frame_type"] == "python"]
    assert [(f["function"], f["line"], f["column"]) for f in python] == [
        ("inner", 20, 4), ("outer", 10, 1),
    ]
    assert all(f["file"] == "app.py" for f in python)


def test_frames_follow_stored_stack_order():
    frames = _frames(render(_mixed_record()))
    assert [f["frame_type"] for f in frames] == ["native", "python", "python", "kernel"]


def test_frame_type_filter_omits_only_rejected_frames():
    report = render(_mixed_record(), DumpConfig(export_stack_frame_types=frozenset({"python"})))
    frames = _frames(report)
    assert [f["function"] for f in frames] == ["inner", "outer"]
    assert len(report.find(SectionKind.SAMPLE)) == 1


def test_rejected_native_frame_keeps_sample_timestamps():
    b = DictionaryBuilder()
    loc = b.location(mapping=0, address=0x1000, frame_type="native")
    stack = b.stack(loc)
    cpu = b.value_type("cpu", "ns")
    record = make_record(b, make_resource(
        [make_profile(cpu, samples=[make_sample(stack, timestamps=[1000, 2000])])]))

    report = render(record, DumpConfig(export_stack_frame_types=frozenset({"python"})))
    samples = report.find(SectionKind.SAMPLE)
    assert len(samples) == 1
    assert samples[0].children == []
    assert samples[0].fields["timestamps_unix_nano"] == [1000, 2000]


def test_location_without_frame_type_attribute_is_unknown():
    b = DictionaryBuilder()
    loc = b.location(address=0x42)
    cpu = b.value_type("cpu", "ns")
    record = make_record(b, make_resource([make_profile(cpu, samples=[make_sample(b.stack(loc))])]))
    assert _frames(render(record))[0]["frame_type"] == "unknown"


def test_repeated_stacks_render_independently():
    b = DictionaryBuilder()
    fn = b.function("f", "f.go")
    stack = b.stack(b.location(lines=[(fn, 1, 0)]))
    cpu = b.value_type("cpu", "ns")
    samples = [make_sample(stack, timestamps=[t]) for t in (3, 1, 2)]
    record = make_record(b, make_resource([make_profile(cpu, samples=samples)]))
    report = render(record)
    sample_sections = report.find(SectionKind.SAMPLE)
    assert [s.fields["timestamps_unix_nano"] for s in sample_sections] == [[3], [1], [2]]
    assert len(_frames(report)) == 3


# ── Export flags ────────────────────────────────────────────────────


def test_export_stack_frames_off_renders_timestamps_only():
    report = render(_mixed_record(), DumpConfig(export_stack_frames=False))
    sample = report.find(SectionKind.SAMPLE)[0]
    assert sample.children == []
    assert sample.fields["timestamps_unix_nano"] == [1000, 2000]


def test_export_stack_frames_off_skips_stack_lookup():
    b = DictionaryBuilder()
    cpu = b.value_type("cpu", "ns")
    record = make_record(b, make_resource([make_profile(cpu, samples=[make_sample(7)])]))
    assert not render(record, DumpConfig(export_stack_frames=False)).has_errors()
    assert render(record, DumpConfig(export_stack_frames=True)).has_errors()


def test_attribute_export_flags():
    b = DictionaryBuilder()
    cpu = b.value_type("cpu", "ns")
    p_attr = b.attr("profile.key", "pv")
    s_attr = b.attr("thread.name", "worker")
    sample = make_sample(b.stack(), timestamps=[1], attrs=[s_attr])
    profile = make_profile(cpu, samples=[sample], attribute_indices=(p_attr,))
    record = make_record(b, make_resource([profile], {"service.name": "svc"}))

    full = render(record)
    assert full.sections[0].attributes == [("service.name", "svc")]
    assert full.find(SectionKind.PROFILE)[0].attributes == [("profile.key", "pv")]
    assert full.find(SectionKind.SAMPLE)[0].attributes == [("thread.name", "worker")]

    bare = render(record, DumpConfig(export_resource_attributes=False,
                                     export_profile_attributes=False,
                                     export_sample_attributes=False))
    assert bare.sections[0].attributes == []
    assert bare.find(SectionKind.PROFILE)[0].attributes == []
    assert bare.find(SectionKind.SAMPLE)[0].attributes == []


def test_profile_fields_are_resolved():
    b = DictionaryBuilder()
    profile = Profile(
        profile_id=bytes(range(16)),
        time_unix_nano=1_700_000_000_000_000_000,
        duration_nano=5_000_000_000,
        sample_type=b.value_type("samples", "count"),
        period_type=b.value_type("cpu", "nanoseconds"),
        period=10_000_000,
        dropped_attributes_count=3,
    )
    fields = render(make_record(b, make_resource([profile]))).find(SectionKind.PROFILE)[0].fields
    assert fields["profile_id"] == "000102030405060708090a0b0c0d0e0f"
    assert fields["sample_type"] == "samples"
    assert fields["sample_unit"] == "count"
    assert fields["period_type"] == "cpu"
    assert fields["period_unit"] == "nanoseconds"
    assert fields["period"] == 10_000_000
    assert fields["dropped_attributes_count"] == 3


def test_scope_section_carries_name_and_version():
    b = DictionaryBuilder()
    record = make_record(b, make_resource([], scope_name="otel-ebpf-profiler", scope_version="v1"))
    scope = render(record).find(SectionKind.SCOPE)[0]
    assert scope.fields["name"] == "otel-ebpf-profiler"
    assert scope.fields["version"] == "v1"


# ── Errors ──────────────────────────────────────────────────────────


def test_index_error_aborts_only_that_profile():
    b = DictionaryBuilder()
    cpu = b.value_type("cpu", "ns")
    good_stack = b.stack(b.location(address=1))
    bad = make_profile(cpu, samples=[make_sample(good_stack, timestamps=[1]),
                                     make_sample(99, timestamps=[2])],
                       profile_id=b"\x01" * 16)
    good = make_profile(cpu, samples=[make_sample(good_stack, timestamps=[3])])
    record = make_record(b, make_resource([bad, good]))

    report = render(record)
    scope = report.find(SectionKind.SCOPE)[0]
    assert [c.kind for c in scope.children] == [SectionKind.PROFILE_ERROR, SectionKind.PROFILE]
    error = scope.children[0]
    assert error.fields["profile_id"] == "01" * 16
    assert error.fields["table"] == "stack"
    assert error.fields["index"] == 99
    assert error.children == []
    # the partial samples of the failed profile are discarded
    assert [s.fields["timestamps_unix_nano"] for s in report.find(SectionKind.SAMPLE)] == [[3]]
    assert report.has_errors()


def test_bad_sample_type_index_is_a_profile_error():
    b = DictionaryBuilder()
    record = make_record(b, make_resource([make_profile(ValueType(type_strindex=50))]))
    report = render(record)
    assert report.counts()[SectionKind.PROFILE_ERROR] == 1


def test_bad_mapping_index_is_a_profile_error():
    b = DictionaryBuilder()
    cpu = b.value_type("cpu", "ns")
    stack = b.stack(b.location(mapping=9, address=1))
    record = make_record(b, make_resource([make_profile(cpu, samples=[make_sample(stack)])]))
    error = render(record).find(SectionKind.PROFILE_ERROR)[0]
    assert error.fields["table"] == "mapping"


def test_non_record_is_a_decode_error():
    with pytest.raises(DecodeError):
        render({"resourceProfiles": []})
    with pytest.raises(DecodeError):
        render(Record(dictionary=None))


# ── Determinism ─────────────────────────────────────────────────────


def test_render_is_deterministic():
    record = _mixed_record()
    cfg = DumpConfig(export_stack_frame_types=frozenset({"python", "native"}))
    first, second = render(record, cfg), render(record, cfg)
    assert first == second
    assert format_text(first) == format_text(second)
    assert format_json(first) == format_json(second)


def test_empty_record_renders_nothing():
    report = render(Record())
    assert report.sections == []
    assert format_text(report) == ""
