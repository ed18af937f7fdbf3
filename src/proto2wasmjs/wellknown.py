"""Static mapping of protobuf well-known types to target-native representations.

The table is built once at import time and exposed read-only, so it can be
shared freely between package builds.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from google.protobuf import duration_pb2, field_mask_pb2, timestamp_pb2

SCRIPT_TARGET = "script"
BACKEND_TARGET = "backend"

_BUF_WKT = "@bufbuild/protobuf/wkt"
_BUF = "@bufbuild/protobuf"


@dataclass(frozen=True, slots=True)
class TargetMapping:
    """How one target represents a well-known type."""

    native_type: str
    is_native: bool
    import_source: str
    serialize_fn: str = ""
    deserialize_fn: str = ""


@dataclass(frozen=True, slots=True)
class WellKnownType:
    """A well-known type with its per-target mappings and JSON codecs."""

    proto_type: str
    script: TargetMapping
    backend: TargetMapping
    serialize: Optional[Callable[[Any], Any]] = None
    deserialize: Optional[Callable[[Any], Any]] = None

    def for_target(self, target: str) -> TargetMapping:
        if target == SCRIPT_TARGET:
            return self.script
        if target == BACKEND_TARGET:
            return self.backend
        raise ValueError(f"Unknown generation target '{target}'")


def _serialize_timestamp(value: _dt.datetime) -> str:
    # Naive datetimes have no instant to encode.
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Timestamp values must be timezone-aware, got naive {value.isoformat()}")
    message = timestamp_pb2.Timestamp()
    message.FromDatetime(value)
    return message.ToJsonString()


def _deserialize_timestamp(value: str) -> _dt.datetime:
    message = timestamp_pb2.Timestamp()
    message.FromJsonString(value)
    return message.ToDatetime(tzinfo=_dt.timezone.utc)


def _serialize_duration(value: _dt.timedelta) -> str:
    message = duration_pb2.Duration()
    message.FromTimedelta(value)
    return message.ToJsonString()


def _deserialize_duration(value: str) -> _dt.timedelta:
    message = duration_pb2.Duration()
    message.FromJsonString(value)
    return message.ToTimedelta()


def _serialize_field_mask(paths: Sequence[str]) -> str:
    message = field_mask_pb2.FieldMask(paths=list(paths))
    return message.ToJsonString()


def _deserialize_field_mask(value: str) -> list[str]:
    message = field_mask_pb2.FieldMask()
    message.FromJsonString(value)
    return list(message.paths)


def _known(go_package: str, go_type: str) -> TargetMapping:
    return TargetMapping(
        native_type=f"{go_package.rsplit('/', 1)[-1]}.{go_type}",
        is_native=False,
        import_source=go_package,
    )


def _build_table() -> Dict[str, WellKnownType]:
    table: Dict[str, WellKnownType] = {}

    table["google.protobuf.Timestamp"] = WellKnownType(
        proto_type="google.protobuf.Timestamp",
        script=TargetMapping(
            native_type="Timestamp",
            is_native=False,
            import_source=_BUF_WKT,
            serialize_fn="timestampFromDate",
            deserialize_fn="timestampDate",
        ),
        backend=_known("google.golang.org/protobuf/types/known/timestamppb", "Timestamp"),
        serialize=_serialize_timestamp,
        deserialize=_deserialize_timestamp,
    )
    table["google.protobuf.FieldMask"] = WellKnownType(
        proto_type="google.protobuf.FieldMask",
        script=TargetMapping(
            native_type="FieldMask",
            is_native=False,
            import_source=_BUF_WKT,
            serialize_fn="fieldMaskToJson",
            deserialize_fn="fieldMaskFromJson",
        ),
        backend=_known("google.golang.org/protobuf/types/known/fieldmaskpb", "FieldMask"),
        serialize=_serialize_field_mask,
        deserialize=_deserialize_field_mask,
    )
    table["google.protobuf.Duration"] = WellKnownType(
        proto_type="google.protobuf.Duration",
        script=TargetMapping(native_type="Duration", is_native=False, import_source=_BUF),
        backend=_known("google.golang.org/protobuf/types/known/durationpb", "Duration"),
        serialize=_serialize_duration,
        deserialize=_deserialize_duration,
    )

    simple = {
        "Any": "anypb",
        "Empty": "emptypb",
        "Struct": "structpb",
        "Value": "structpb",
        "ListValue": "structpb",
        "DoubleValue": "wrapperspb",
        "FloatValue": "wrapperspb",
        "Int64Value": "wrapperspb",
        "UInt64Value": "wrapperspb",
        "Int32Value": "wrapperspb",
        "UInt32Value": "wrapperspb",
        "BoolValue": "wrapperspb",
        "StringValue": "wrapperspb",
        "BytesValue": "wrapperspb",
    }
    for name, go_package in simple.items():
        proto_type = f"google.protobuf.{name}"
        table[proto_type] = WellKnownType(
            proto_type=proto_type,
            script=TargetMapping(native_type=name, is_native=False, import_source=_BUF),
            backend=_known(f"google.golang.org/protobuf/types/known/{go_package}", name),
        )
    return table


_MAPPINGS: Mapping[str, WellKnownType] = MappingProxyType(_build_table())


def get_mapping(proto_type: str) -> Optional[WellKnownType]:
    """Return the mapping for ``proto_type`` or ``None`` for ordinary messages."""

    return _MAPPINGS.get(proto_type)


def is_well_known(proto_type: str) -> bool:
    return proto_type in _MAPPINGS


def all_mappings() -> Dict[str, WellKnownType]:
    return dict(_MAPPINGS)


__all__ = [
    "BACKEND_TARGET",
    "SCRIPT_TARGET",
    "TargetMapping",
    "WellKnownType",
    "all_mappings",
    "get_mapping",
    "is_well_known",
]
