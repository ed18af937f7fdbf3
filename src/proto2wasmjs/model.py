from __future__ import annotations

"""Dataclasses representing a protobuf schema graph in a builder-friendly format."""

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FieldCardinality(str, Enum):
    """Label of a field as declared in the descriptor."""

    OPTIONAL = "optional"
    REQUIRED = "required"
    REPEATED = "repeated"


class FieldKind(str, Enum):
    """What a field holds; ``MAP`` replaces the synthetic repeated entry message."""

    SCALAR = "scalar"
    ENUM = "enum"
    MESSAGE = "message"
    MAP = "map"


@dataclass(slots=True)
class MapEntry:
    """Key and value of a ``map<K, V>`` field, resolved like ordinary fields."""

    key_kind: FieldKind
    key_scalar: Optional[str] = None
    key_type_name: Optional[str] = None
    value_kind: FieldKind = FieldKind.SCALAR
    value_scalar: Optional[str] = None
    value_type_name: Optional[str] = None
    key_resolved_type: Optional[ProtoType] = None
    value_resolved_type: Optional[ProtoType] = None


@dataclass(slots=True)
class Field:
    """A message field with its resolved target type, if any."""

    name: str
    number: int
    cardinality: FieldCardinality
    kind: FieldKind
    scalar: Optional[str] = None
    type_name: Optional[str] = None
    resolved_type: Optional[ProtoType] = None
    map_entry: Optional[MapEntry] = None
    default_value: Optional[str] = None
    json_name: Optional[str] = None
    oneof: Optional[str] = None
    oneof_index: Optional[int] = None
    proto3_optional: bool = False
    packed: Optional[bool] = None
    options: Dict[str, Any] = field(default_factory=dict)
    comment: str = ""

    @property
    def is_repeated(self) -> bool:
        return self.cardinality is FieldCardinality.REPEATED and self.kind is not FieldKind.MAP


@dataclass(slots=True)
class EnumValue:
    """One enum constant."""

    name: str
    number: int
    options: Dict[str, Any] = field(default_factory=dict)
    comment: str = ""


@dataclass(slots=True)
class Enum:
    """Represents an enum type.

    ``package`` and ``file_name`` are taken from the defining file descriptor,
    never derived from ``full_name``.
    """

    name: str
    full_name: str
    package: str = ""
    file_name: str = ""
    values: List[EnumValue] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    comment: str = ""
    is_nested: bool = False


@dataclass(slots=True)
class Oneof:
    """A oneof and the fields that belong to it."""

    name: str
    full_name: str
    fields: List[Field] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_synthetic(self) -> bool:
        """Whether the oneof only wraps a single proto3 ``optional`` field."""

        return len(self.fields) == 1 and self.fields[0].proto3_optional


@dataclass(slots=True)
class Message:
    """Represents a message type.

    ``package`` and ``file_name`` are taken from the defining file descriptor,
    never derived from ``full_name``.
    """

    name: str
    full_name: str
    package: str = ""
    file_name: str = ""
    fields: List[Field] = field(default_factory=list)
    nested_messages: List[Message] = field(default_factory=list)
    nested_enums: List[Enum] = field(default_factory=list)
    oneofs: List[Oneof] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    comment: str = ""
    is_nested: bool = False
    is_map_entry: bool = False
    reserved_names: List[str] = field(default_factory=list)
    reserved_ranges: List[tuple[int, int]] = field(default_factory=list)


@dataclass(slots=True)
class Method:
    """An RPC; ``input_resolved``/``output_resolved`` are set by the loader."""

    name: str
    full_name: str
    input_type: str
    output_type: str
    input_resolved: Optional[Message] = None
    output_resolved: Optional[Message] = None
    client_streaming: bool = False
    server_streaming: bool = False
    options: Dict[str, Any] = field(default_factory=dict)
    comment: str = ""


@dataclass(slots=True)
class Service:
    """A service and its methods in declaration order."""

    name: str
    full_name: str
    package: str = ""
    file_name: str = ""
    methods: List[Method] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    comment: str = ""


@dataclass(slots=True)
class ProtoFile:
    """One ``.proto`` file with its top-level declarations."""

    name: str
    package: Optional[str]
    dependencies: List[str] = field(default_factory=list)
    public_dependencies: List[str] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)
    enums: List[Enum] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)
    go_package: str = ""

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.name) or "."

    @property
    def go_import_path(self) -> str:
        """Go import path for the file, ``go_package`` up to any ``;name`` suffix."""

        if self.go_package:
            return self.go_package.split(";", 1)[0]
        return self.directory

    @property
    def go_package_name(self) -> str:
        if ";" in self.go_package:
            return self.go_package.split(";", 1)[1]
        return posixpath.basename(self.go_import_path)


ProtoType = Message | Enum
