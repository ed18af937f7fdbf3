from __future__ import annotations

"""Build the schema graph from a ``CodeGeneratorRequest``.

Loading happens in two passes.  The first pass converts every file of the
request and indexes each named type under its fully-qualified name; field,
map and method references are queued.  The second pass resolves the queue
against the index, so references may point forwards or across files.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, MutableMapping, Optional, Sequence, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, json_format, message_factory
from google.protobuf.compiler import plugin_pb2
from google.protobuf.message import Message

from . import model
from .errors import TypeResolutionError

logger = logging.getLogger(__name__)

FDP = descriptor_pb2.FieldDescriptorProto

OptionDict = Dict[str, object]
OptionValidator = Callable[["OptionContext", OptionDict], None]

# SourceCodeInfo path components.
_FILE_MESSAGE = 4
_FILE_ENUM = 5
_FILE_SERVICE = 6
_MESSAGE_FIELD = 2
_MESSAGE_NESTED = 3
_MESSAGE_ENUM = 4
_ENUM_VALUE = 2
_SERVICE_METHOD = 2

_REFERENCE_TYPES = {FDP.TYPE_MESSAGE, FDP.TYPE_GROUP, FDP.TYPE_ENUM}

# TYPE_STRING -> "string", TYPE_SFIXED64 -> "sfixed64", ...
_SCALAR_TYPE_NAMES: Dict[int, str] = {
    number: name[len("TYPE_"):].lower()
    for name, number in FDP.Type.items()
    if number not in _REFERENCE_TYPES
}

_CARDINALITIES: Dict[int, model.FieldCardinality] = {
    FDP.LABEL_OPTIONAL: model.FieldCardinality.OPTIONAL,
    FDP.LABEL_REQUIRED: model.FieldCardinality.REQUIRED,
    FDP.LABEL_REPEATED: model.FieldCardinality.REPEATED,
}


@dataclass(frozen=True, slots=True)
class OptionContext:
    """Where a set of options was declared; handed to validation hooks."""

    element_type: str
    file_name: str
    full_name: Optional[str] = None
    field_name: Optional[str] = None


@dataclass(slots=True)
class _PendingReference:
    owner: str
    type_name: str
    assign: Callable[[model.ProtoType], None]
    reason: str = "type is not defined"
    messages_only: bool = False


def _strip_leading_dot(type_name: str) -> str:
    return type_name[1:] if type_name.startswith(".") else type_name


class DescriptorLoader:
    """Convert the descriptors of a request into :mod:`proto2wasmjs.model` objects.

    Every message, enum and service records the package and file of the
    descriptor that declares it, so downstream code never has to recover a
    package by splitting a qualified name.
    """

    def __init__(
        self,
        request: plugin_pb2.CodeGeneratorRequest,
        *,
        option_validator: Optional[OptionValidator] = None,
    ) -> None:
        self._request = request
        self._option_validator = option_validator
        self._files: MutableMapping[str, model.ProtoFile] = {}
        self._types: Dict[str, model.ProtoType] = {}
        self._pending: List[_PendingReference] = []
        self._map_entries: Dict[str, descriptor_pb2.DescriptorProto] = {}
        self._comments: Dict[Tuple[int, ...], str] = {}
        self._options_classes: Optional[Dict[str, type]] = None
        self._loaded = False

    @classmethod
    def from_file_descriptor_set(
        cls,
        descriptor_set: descriptor_pb2.FileDescriptorSet,
        files_to_generate: Optional[Sequence[str]] = None,
        *,
        parameter: str = "",
        option_validator: Optional[OptionValidator] = None,
    ) -> "DescriptorLoader":
        """Wrap a ``protoc --descriptor_set_out`` payload in a synthetic request."""

        request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
        request.proto_file.extend(descriptor_set.file)
        if files_to_generate is None:
            files_to_generate = [file_proto.name for file_proto in descriptor_set.file]
        request.file_to_generate.extend(files_to_generate)
        return cls(request, option_validator=option_validator)

    @property
    def files(self) -> MutableMapping[str, model.ProtoFile]:
        return self.load()

    @property
    def files_to_generate(self) -> List[str]:
        return list(self._request.file_to_generate)

    @property
    def parameter(self) -> str:
        return self._request.parameter

    def get_file(self, name: str) -> model.ProtoFile:
        return self.load()[name]

    def find_type(self, full_name: str) -> Optional[model.ProtoType]:
        self.load()
        return self._types.get(full_name)

    def load(self) -> MutableMapping[str, model.ProtoFile]:
        """Convert every file of the request once and return them keyed by file name.

        Raises :class:`TypeResolutionError` when a dependency is missing from
        the request or a type reference cannot be resolved.
        """

        if self._loaded:
            return self._files

        known_files = {file_proto.name for file_proto in self._request.proto_file}
        for file_proto in self._request.proto_file:
            missing = [name for name in file_proto.dependency if name not in known_files]
            if missing:
                raise TypeResolutionError(file_proto.name, missing[0], "dependency is not part of the request")
            self._files[file_proto.name] = self._convert_file(file_proto)

        self._resolve_pending()
        self._loaded = True
        logger.debug("Loaded %d descriptor file(s) with %d named type(s)", len(self._files), len(self._types))
        return self._files

    # ------------------------------------------------------------------
    # First pass
    # ------------------------------------------------------------------
    def _convert_file(self, file_proto: descriptor_pb2.FileDescriptorProto) -> model.ProtoFile:
        self._comments = {
            tuple(location.path): location.leading_comments.strip()
            for location in file_proto.source_code_info.location
            if location.leading_comments
        }
        package = file_proto.package or None
        proto_file = model.ProtoFile(
            name=file_proto.name,
            package=package,
            dependencies=list(file_proto.dependency),
            public_dependencies=[file_proto.dependency[index] for index in file_proto.public_dependency],
            options=self._options(file_proto.options, "file", file_proto.name, package),
            go_package=file_proto.options.go_package,
        )
        proto_file.enums = [
            self._convert_enum(enum_proto, file_proto, (), (_FILE_ENUM, index))
            for index, enum_proto in enumerate(file_proto.enum_type)
        ]
        proto_file.messages = [
            self._convert_message(message_proto, file_proto, (), (_FILE_MESSAGE, index))
            for index, message_proto in enumerate(file_proto.message_type)
        ]
        proto_file.services = [
            self._convert_service(service_proto, file_proto, (_FILE_SERVICE, index))
            for index, service_proto in enumerate(file_proto.service)
        ]
        return proto_file

    def _convert_service(
        self,
        service_proto: descriptor_pb2.ServiceDescriptorProto,
        file_proto: descriptor_pb2.FileDescriptorProto,
        path: Tuple[int, ...],
    ) -> model.Service:
        full_name = _qualify(file_proto.package, (), service_proto.name)
        service = model.Service(
            name=service_proto.name,
            full_name=full_name,
            package=file_proto.package,
            file_name=file_proto.name,
            options=self._options(service_proto.options, "service", file_proto.name, full_name),
            comment=self._comments.get(path, ""),
        )
        for index, method_proto in enumerate(service_proto.method):
            method = model.Method(
                name=method_proto.name,
                full_name=f"{full_name}.{method_proto.name}",
                input_type=_strip_leading_dot(method_proto.input_type),
                output_type=_strip_leading_dot(method_proto.output_type),
                client_streaming=method_proto.client_streaming,
                server_streaming=method_proto.server_streaming,
                options=self._options(
                    method_proto.options, "method", file_proto.name, full_name, method_proto.name
                ),
                comment=self._comments.get(path + (_SERVICE_METHOD, index), ""),
            )
            self._queue(method.full_name, method.input_type, method, "input_resolved", messages_only=True)
            self._queue(method.full_name, method.output_type, method, "output_resolved", messages_only=True)
            service.methods.append(method)
        return service

    def _convert_enum(
        self,
        enum_proto: descriptor_pb2.EnumDescriptorProto,
        file_proto: descriptor_pb2.FileDescriptorProto,
        parents: Tuple[str, ...],
        path: Tuple[int, ...],
    ) -> model.Enum:
        full_name = _qualify(file_proto.package, parents, enum_proto.name)
        enum = model.Enum(
            name=enum_proto.name,
            full_name=full_name,
            package=file_proto.package,
            file_name=file_proto.name,
            options=self._options(enum_proto.options, "enum", file_proto.name, full_name),
            comment=self._comments.get(path, ""),
            is_nested=bool(parents),
        )
        enum.values = [
            model.EnumValue(
                name=value_proto.name,
                number=value_proto.number,
                options=self._options(
                    value_proto.options, "enum_value", file_proto.name, full_name, value_proto.name
                ),
                comment=self._comments.get(path + (_ENUM_VALUE, index), ""),
            )
            for index, value_proto in enumerate(enum_proto.value)
        ]
        self._types[full_name] = enum
        return enum

    def _convert_message(
        self,
        message_proto: descriptor_pb2.DescriptorProto,
        file_proto: descriptor_pb2.FileDescriptorProto,
        parents: Tuple[str, ...],
        path: Tuple[int, ...],
    ) -> model.Message:
        full_name = _qualify(file_proto.package, parents, message_proto.name)
        message = model.Message(
            name=message_proto.name,
            full_name=full_name,
            package=file_proto.package,
            file_name=file_proto.name,
            options=self._options(message_proto.options, "message", file_proto.name, full_name),
            comment=self._comments.get(path, ""),
            is_nested=bool(parents),
            reserved_names=list(message_proto.reserved_name),
            reserved_ranges=[(item.start, item.end) for item in message_proto.reserved_range],
        )
        self._types[full_name] = message
        scope = parents + (message_proto.name,)

        message.oneofs = [
            model.Oneof(
                name=oneof_proto.name,
                full_name=f"{full_name}.{oneof_proto.name}",
                options=self._options(
                    oneof_proto.options, "oneof", file_proto.name, f"{full_name}.{oneof_proto.name}"
                ),
            )
            for oneof_proto in message_proto.oneof_decl
        ]

        # Map entries must be known before the fields that use them are converted.
        for index, nested_proto in enumerate(message_proto.nested_type):
            if nested_proto.options.map_entry:
                self._map_entries[_qualify(file_proto.package, scope, nested_proto.name)] = nested_proto
            else:
                message.nested_messages.append(
                    self._convert_message(nested_proto, file_proto, scope, path + (_MESSAGE_NESTED, index))
                )

        message.nested_enums = [
            self._convert_enum(enum_proto, file_proto, scope, path + (_MESSAGE_ENUM, index))
            for index, enum_proto in enumerate(message_proto.enum_type)
        ]

        for index, field_proto in enumerate(message_proto.field):
            item = self._convert_field(field_proto, message, file_proto.name)
            item.comment = self._comments.get(path + (_MESSAGE_FIELD, index), "")
            message.fields.append(item)
            if item.oneof_index is not None and item.oneof_index < len(message.oneofs):
                message.oneofs[item.oneof_index].fields.append(item)

        return message

    def _convert_field(
        self,
        field_proto: descriptor_pb2.FieldDescriptorProto,
        message: model.Message,
        file_name: str,
    ) -> model.Field:
        owner = f"{message.full_name}.{field_proto.name}"
        cardinality = _CARDINALITIES[field_proto.label]
        kind, scalar, type_name = self._classify(field_proto)

        map_entry = None
        if (
            kind is model.FieldKind.MESSAGE
            and cardinality is model.FieldCardinality.REPEATED
            and type_name in self._map_entries
        ):
            map_entry = self._map_entry(self._map_entries[type_name], owner)
            kind = model.FieldKind.MAP

        oneof_index = field_proto.oneof_index if field_proto.HasField("oneof_index") else None
        oneof_name = None
        if oneof_index is not None and oneof_index < len(message.oneofs):
            oneof_name = message.oneofs[oneof_index].name

        item = model.Field(
            name=field_proto.name,
            number=field_proto.number,
            cardinality=cardinality,
            kind=kind,
            scalar=scalar,
            type_name=type_name or None,
            map_entry=map_entry,
            default_value=field_proto.default_value or None,
            json_name=field_proto.json_name or None,
            oneof=oneof_name,
            oneof_index=oneof_index,
            proto3_optional=field_proto.proto3_optional,
            packed=field_proto.options.packed if field_proto.options.HasField("packed") else None,
            options=self._options(field_proto.options, "field", file_name, message.full_name, field_proto.name),
        )

        if kind in (model.FieldKind.MESSAGE, model.FieldKind.ENUM) and type_name:
            self._queue(owner, type_name, item, "resolved_type")
        return item

    def _map_entry(self, entry_proto: descriptor_pb2.DescriptorProto, owner: str) -> model.MapEntry:
        key_kind, key_scalar, key_type_name = self._classify(entry_proto.field[0])
        value_kind, value_scalar, value_type_name = self._classify(entry_proto.field[1])
        entry = model.MapEntry(
            key_kind=key_kind,
            key_scalar=key_scalar,
            key_type_name=key_type_name,
            value_kind=value_kind,
            value_scalar=value_scalar,
            value_type_name=value_type_name,
        )
        if key_type_name:
            self._queue(owner, key_type_name, entry, "key_resolved_type", reason="unknown map key type")
        if value_type_name:
            self._queue(owner, value_type_name, entry, "value_resolved_type", reason="unknown map value type")
        return entry

    def _classify(
        self, field_proto: descriptor_pb2.FieldDescriptorProto
    ) -> Tuple[model.FieldKind, Optional[str], Optional[str]]:
        scalar = _SCALAR_TYPE_NAMES.get(field_proto.type)
        if scalar is not None:
            return model.FieldKind.SCALAR, scalar, None
        type_name = _strip_leading_dot(field_proto.type_name)
        if field_proto.type == FDP.TYPE_ENUM:
            return model.FieldKind.ENUM, None, type_name
        return model.FieldKind.MESSAGE, None, type_name

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------
    def _options(
        self,
        options: Message,
        element_type: str,
        file_name: str,
        full_name: Optional[str],
        field_name: Optional[str] = None,
    ) -> OptionDict:
        normalized = _to_dict(self._with_extensions(options))
        if self._option_validator is not None:
            context = OptionContext(
                element_type=element_type,
                file_name=file_name,
                full_name=full_name,
                field_name=field_name,
            )
            self._option_validator(context, normalized)
        return normalized

    def _with_extensions(self, options: Message) -> Message:
        """Re-parse ``options`` with a pool built from the request.

        The default pool does not know custom options such as
        ``wasmjs.v1.browser_provided``; ``MessageToDict`` would drop them.
        """

        if self._options_classes is None:
            self._options_classes = self._build_options_classes()
        options_class = self._options_classes.get(options.DESCRIPTOR.full_name)
        if options_class is None:
            return options
        rich = options_class()
        rich.ParseFromString(options.SerializeToString())
        return rich

    def _build_options_classes(self) -> Dict[str, type]:
        extends_options = any(
            extension.extendee.lstrip(".").startswith("google.protobuf.")
            for file_proto in self._request.proto_file
            for extension in file_proto.extension
        )
        if not extends_options:
            return {}

        pool = descriptor_pool.DescriptorPool()
        for file_proto in self._request.proto_file:
            pool.AddSerializedFile(file_proto.SerializeToString())
        classes = message_factory.GetMessageClassesForFiles(
            [file_proto.name for file_proto in self._request.proto_file], pool
        )
        return {
            name: cls
            for name, cls in classes.items()
            if name.startswith("google.protobuf.") and name.endswith("Options")
        }

    # ------------------------------------------------------------------
    # Second pass
    # ------------------------------------------------------------------
    def _queue(
        self,
        owner: str,
        type_name: str,
        target: object,
        attribute: str,
        *,
        reason: str = "type is not defined",
        messages_only: bool = False,
    ) -> None:
        self._pending.append(
            _PendingReference(
                owner=owner,
                type_name=type_name,
                assign=lambda resolved: setattr(target, attribute, resolved),
                reason=reason,
                messages_only=messages_only,
            )
        )

    def _resolve_pending(self) -> None:
        for reference in self._pending:
            resolved = self._types.get(reference.type_name)
            if resolved is None or (reference.messages_only and not isinstance(resolved, model.Message)):
                raise TypeResolutionError(reference.owner, reference.type_name, reference.reason)
            reference.assign(resolved)
        self._pending.clear()


def _qualify(package: Optional[str], parents: Tuple[str, ...], name: str) -> str:
    return ".".join(segment for segment in (package, *parents, name) if segment)


def _to_dict(message: Message) -> OptionDict:
    """``MessageToDict`` across protobuf releases; newer ones dropped ``including_default_value_fields``."""

    try:
        return json_format.MessageToDict(
            message, preserving_proto_field_name=True, including_default_value_fields=False
        )
    except TypeError:
        return json_format.MessageToDict(message, preserving_proto_field_name=True)


__all__ = ["DescriptorLoader", "OptionContext", "OptionValidator"]
