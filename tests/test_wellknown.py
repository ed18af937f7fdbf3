from __future__ import annotations

import datetime as dt

import pytest

pytest.importorskip("google.protobuf")

from proto2wasmjs import wellknown


def test_timestamp_round_trip() -> None:
    mapping = wellknown.get_mapping("google.protobuf.Timestamp")
    assert mapping is not None

    value = dt.datetime(2024, 5, 17, 8, 30, 15, 123000, tzinfo=dt.timezone.utc)
    encoded = mapping.serialize(value)

    assert encoded == "2024-05-17T08:30:15.123Z"
    assert mapping.deserialize(encoded) == value


def test_timestamp_rejects_naive_datetimes() -> None:
    mapping = wellknown.get_mapping("google.protobuf.Timestamp")
    assert mapping is not None

    with pytest.raises(ValueError, match="timezone-aware"):
        mapping.serialize(dt.datetime(2024, 5, 17, 8, 30, 15))


def test_timestamp_encodes_offset_datetimes_as_utc() -> None:
    mapping = wellknown.get_mapping("google.protobuf.Timestamp")
    assert mapping is not None

    value = dt.datetime(2024, 5, 17, 10, 30, 15, tzinfo=dt.timezone(dt.timedelta(hours=2)))
    encoded = mapping.serialize(value)

    assert encoded == "2024-05-17T08:30:15Z"
    assert mapping.deserialize(encoded) == value


def test_field_mask_round_trip() -> None:
    mapping = wellknown.get_mapping("google.protobuf.FieldMask")
    assert mapping is not None

    encoded = mapping.serialize(["user_name", "address.city"])

    assert encoded == "userName,address.city"
    assert mapping.deserialize(encoded) == ["user_name", "address.city"]


def test_per_target_mappings() -> None:
    timestamp = wellknown.get_mapping("google.protobuf.Timestamp")
    assert timestamp is not None

    script = timestamp.for_target(wellknown.SCRIPT_TARGET)
    backend = timestamp.for_target(wellknown.BACKEND_TARGET)

    assert script.native_type == "Timestamp"
    assert script.import_source == "@bufbuild/protobuf/wkt"
    assert script.serialize_fn == "timestampFromDate"
    assert backend.native_type == "timestamppb.Timestamp"
    assert backend.import_source == "google.golang.org/protobuf/types/known/timestamppb"

    with pytest.raises(ValueError):
        timestamp.for_target("cobol")


def test_ordinary_messages_have_no_mapping() -> None:
    assert wellknown.get_mapping("library.v1.Book") is None
    assert wellknown.is_well_known("google.protobuf.FieldMask") is True
    assert wellknown.is_well_known("library.v1.Book") is False


def test_all_mappings_returns_a_copy() -> None:
    copy = wellknown.all_mappings()
    copy.pop("google.protobuf.Timestamp")

    assert wellknown.is_well_known("google.protobuf.Timestamp") is True
