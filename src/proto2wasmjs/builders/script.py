"""Template data for the browser script (TypeScript) target.

The script target is decomposed more finely than the backend: one client per
service, interface/model/schema files per output directory, and one factory,
deserializer and schema aggregator per package.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from .. import model
from ..config import GenerationConfig
from ..errors import GenerationError
from ..filters import (
    EnumCollector,
    FilterCriteria,
    MessageCollector,
    MethodFilter,
    ServiceFilter,
    ServiceFilterResult,
)
from ..naming import (
    flatten_type_name,
    lower_camel_from_snake,
    to_base_name,
    to_camel_case,
    to_deserializer_name,
    to_factory_name,
    to_go_func_name,
    to_js_namespace,
    to_module_name,
    to_schema_registry_name,
)
from ..paths import calculate_relative_path, relative_import, relative_path
from ..wellknown import SCRIPT_TARGET, get_mapping
from .shared import (
    BuildContext,
    ImportGroup,
    MethodData,
    PackageInfo,
    SchemaIndex,
    ServiceData,
    require_resolved,
)

logger = logging.getLogger(__name__)

INTERFACES_SUFFIX = "interfaces"
MODELS_SUFFIX = "models"
SCHEMAS_SUFFIX = "schemas"
FACTORY_SUFFIX = "factory"

_NUMERIC_SCALARS = {
    "double",
    "float",
    "int32",
    "int64",
    "uint32",
    "uint64",
    "sint32",
    "sint64",
    "fixed32",
    "fixed64",
    "sfixed32",
    "sfixed64",
}

# scalar -> (script type, script default literal, python default)
_SCALAR_TYPES: Dict[str, Tuple[str, str, Any]] = {
    "string": ("string", '""', ""),
    "bool": ("boolean", "false", False),
    "bytes": ("Uint8Array", "new Uint8Array()", b""),
    **{name: ("number", "0", 0) for name in _NUMERIC_SCALARS},
}


class SchemaFieldType(str, Enum):
    """Field kinds understood by the runtime schema registry."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    MESSAGE = "message"
    REPEATED = "repeated"
    MAP = "map"
    ONEOF = "oneof"


@dataclass(slots=True)
class SchemaImport:
    registry_name: str
    alias: str
    import_path: str


@dataclass(frozen=True, slots=True)
class FactoryDependency:
    """Another package's factory that builds types referenced from this one."""

    package_name: str
    factory_name: str
    import_path: str
    instance_name: str


@dataclass(slots=True)
class FieldSchemaInfo:
    name: str
    type: SchemaFieldType
    id: int
    message_type: str = ""
    repeated: bool = False
    map_key_type: str = ""
    map_value_type: str = ""
    oneof_group: str = ""
    optional: bool = False


@dataclass(slots=True)
class MessageSchemaInfo:
    name: str
    full_name: str
    fields: List[FieldSchemaInfo] = field(default_factory=list)
    oneof_groups: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ScriptFieldInfo:
    """A message field with its resolved script type.

    ``message_package`` is the package declared by the file defining the
    referenced type, taken from the schema graph.
    """

    name: str
    ts_name: str
    ts_type: str
    number: int
    default_value: str
    python_default: Any = None
    is_optional: bool = False
    is_repeated: bool = False
    is_map: bool = False
    is_oneof: bool = False
    oneof_group: str = ""
    message_type: str = ""
    message_package: str = ""
    is_nested_type: bool = False
    comment: str = ""


@dataclass(slots=True)
class ScriptMessageInfo:
    name: str
    ts_name: str
    package_name: str
    full_name: str
    proto_file: str
    method_name: str
    comment: str = ""
    fields: List[ScriptFieldInfo] = field(default_factory=list)
    is_nested: bool = False
    oneof_groups: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ScriptEnumValue:
    name: str
    ts_name: str
    number: int
    comment: str = ""


@dataclass(slots=True)
class ScriptEnumInfo:
    name: str
    ts_name: str
    package_name: str
    full_name: str
    proto_file: str
    comment: str = ""
    values: List[ScriptEnumValue] = field(default_factory=list)


Constructor = Callable[..., Dict[str, Any]]


@dataclass(frozen=True, slots=True)
class FactoryMethod:
    """Entry of the factory dispatch table."""

    full_name: str
    ts_name: str
    method_name: str
    constructor: Constructor


class FactoryLookupStatus(str, Enum):
    FOUND = "found"
    DELEGATED = "delegated"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class FactoryLookup:
    """Typed outcome of :meth:`FactoryDispatchTable.lookup`."""

    status: FactoryLookupStatus
    full_name: str
    method: Optional[FactoryMethod] = None
    dependency: Optional[FactoryDependency] = None

    @property
    def found(self) -> bool:
        return self.status is FactoryLookupStatus.FOUND


class FactoryDispatchTable:
    """Map fully-qualified message names to their constructors.

    Types owned by another package resolve to a ``DELEGATED`` lookup naming
    that package's factory; unknown names resolve to ``NOT_FOUND``.
    """

    def __init__(self, package_name: str) -> None:
        self.package_name = package_name
        self._methods: Dict[str, FactoryMethod] = {}
        self._delegates: Dict[str, FactoryDependency] = {}

    def register(self, method: FactoryMethod) -> None:
        self._methods[method.full_name] = method

    def register_delegate(self, full_name: str, dependency: FactoryDependency) -> None:
        if full_name not in self._methods:
            self._delegates[full_name] = dependency

    def lookup(self, full_name: str) -> FactoryLookup:
        method = self._methods.get(full_name)
        if method is not None:
            return FactoryLookup(FactoryLookupStatus.FOUND, full_name, method=method)
        dependency = self._delegates.get(full_name)
        if dependency is not None:
            return FactoryLookup(FactoryLookupStatus.DELEGATED, full_name, dependency=dependency)
        return FactoryLookup(FactoryLookupStatus.NOT_FOUND, full_name)

    def create(self, full_name: str, data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        lookup = self.lookup(full_name)
        if lookup.method is None:
            raise KeyError(f"No local factory method for '{full_name}' ({lookup.status.value})")
        return lookup.method.constructor(data)

    def methods(self) -> List[FactoryMethod]:
        return [self._methods[name] for name in sorted(self._methods)]

    def __contains__(self, full_name: object) -> bool:
        return full_name in self._methods

    def __len__(self) -> int:
        return len(self._methods)


@dataclass(slots=True)
class ScriptTemplateData:
    """Everything a script template needs; no name, type or path is left unresolved."""

    package_name: str
    package_path: str
    module_name: str
    source_path: str = ""
    directory: str = ""
    api_structure: str = ""
    js_namespace: str = ""
    services: List[ServiceData] = field(default_factory=list)
    messages: List[ScriptMessageInfo] = field(default_factory=list)
    enums: List[ScriptEnumInfo] = field(default_factory=list)
    import_groups: List[ImportGroup] = field(default_factory=list)
    external_imports: List[ImportGroup] = field(default_factory=list)
    schemas: List[MessageSchemaInfo] = field(default_factory=list)
    schema_imports: List[SchemaImport] = field(default_factory=list)
    dependencies: List[FactoryDependency] = field(default_factory=list)
    base_name: str = ""
    factory_name: str = ""
    deserializer_name: str = ""
    schema_registry_name: str = ""
    dispatch: Optional[FactoryDispatchTable] = None

    @property
    def has_browser_services(self) -> bool:
        return any(service.is_browser_provided for service in self.services)

    @property
    def has_messages(self) -> bool:
        return bool(self.messages)

    @property
    def has_enums(self) -> bool:
        return bool(self.enums)


class ScriptDataBuilder:
    """Build :class:`ScriptTemplateData` records for one package at a time."""

    def __init__(
        self,
        schema: SchemaIndex,
        *,
        service_filter: Optional[ServiceFilter] = None,
        method_filter: Optional[MethodFilter] = None,
        message_collector: Optional[MessageCollector] = None,
        enum_collector: Optional[EnumCollector] = None,
    ) -> None:
        self._schema = schema
        self._service_filter = service_filter or ServiceFilter()
        self._method_filter = method_filter or MethodFilter()
        self._message_collector = message_collector or MessageCollector()
        self._enum_collector = enum_collector or EnumCollector()

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------
    def build_service_client_data(
        self,
        package_info: PackageInfo,
        service: model.Service,
        criteria: FilterCriteria,
        config: GenerationConfig,
    ) -> ScriptTemplateData:
        """Client record for a single service.

        A service whose methods were all filtered out still yields a record,
        with ``methods == []``.
        """

        proto_file = package_info.file_for_service(service)
        if proto_file is None:
            raise GenerationError(
                f"Service '{service.full_name}' is not declared in package '{package_info.name}'"
            )

        result = self._service_filter.should_include(service, criteria)
        service_data = self._build_service_data(service, result, criteria)
        logger.debug(
            "Script client %s has %d method(s)", service.full_name, len(service_data.methods)
        )

        context = BuildContext(config, package_info)
        self._collect_service_imports(service, package_info, criteria, context)

        return ScriptTemplateData(
            package_name=package_info.name,
            package_path=package_info.path,
            module_name=to_module_name(package_info.name, config.module_name),
            source_path=proto_file.name,
            directory=package_info.path,
            api_structure=config.js_structure.value,
            js_namespace=to_js_namespace(package_info.name, config.js_namespace),
            services=[service_data],
            import_groups=context.import_groups(),
        )

    def build_client_data(
        self,
        package_info: PackageInfo,
        criteria: FilterCriteria,
        config: GenerationConfig,
    ) -> Optional[ScriptTemplateData]:
        """Bundle every included service of the package; ``None`` if there are none."""

        services: List[ServiceData] = []
        context = BuildContext(config, package_info)
        for proto_file in package_info.files:
            for service in proto_file.services:
                result = self._service_filter.should_include(service, criteria)
                if not result.include:
                    continue
                services.append(self._build_service_data(service, result, criteria))
                self._collect_service_imports(service, package_info, criteria, context)

        if not services:
            return None

        return ScriptTemplateData(
            package_name=package_info.name,
            package_path=package_info.path,
            module_name=to_module_name(package_info.name, config.module_name),
            source_path=package_info.source_path,
            directory=package_info.path,
            api_structure=config.js_structure.value,
            js_namespace=to_js_namespace(package_info.name, config.js_namespace),
            services=services,
            import_groups=context.import_groups(),
        )

    def _build_service_data(
        self,
        service: model.Service,
        result: ServiceFilterResult,
        criteria: FilterCriteria,
    ) -> ServiceData:
        included, _ = self._method_filter.filter_methods(service, criteria)
        methods: List[MethodData] = []
        for method, method_result in included:
            request = require_resolved(method.input_resolved, method.full_name, method.input_type)
            response = require_resolved(method.output_resolved, method.full_name, method.output_type)
            methods.append(
                MethodData(
                    name=method.name,
                    js_name=self._method_filter.js_name(method, criteria, method_result),
                    go_func_name=to_go_func_name(service.name, method.name),
                    request_type=request.full_name,
                    response_type=response.full_name,
                    request_ts_type=self._script_type_name(request),
                    response_ts_type=self._script_type_name(response),
                    is_async=method_result.is_async,
                    is_server_streaming=method_result.is_server_streaming,
                    comment=method.comment,
                )
            )

        return ServiceData(
            name=service.name,
            go_type="",
            js_name=result.custom_name or to_camel_case(service.name),
            package_path=service.package.replace(".", "/"),
            package_alias=to_js_namespace(service.package),
            is_browser_provided=result.is_browser_provided,
            custom_name=result.custom_name,
            comment=service.comment,
            methods=methods,
        )

    def _collect_service_imports(
        self,
        service: model.Service,
        package_info: PackageInfo,
        criteria: FilterCriteria,
        context: BuildContext,
    ) -> None:
        included, _ = self._method_filter.filter_methods(service, criteria)
        for method, _result in included:
            for resolved, type_name in (
                (method.input_resolved, method.input_type),
                (method.output_resolved, method.output_type),
            ):
                proto_type = require_resolved(resolved, method.full_name, type_name)
                self._register_type_import(
                    proto_type, package_info, package_info.path, context, method.full_name, local=True
                )

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------
    def type_directories(self, package_info: PackageInfo) -> List[str]:
        """Output directories of the package's type files.

        A source directory below the package directory gets its own type files
        there; source directories elsewhere share the package directory.
        """

        return sorted(
            {self._output_directory(package_info.name, proto_file.name) for proto_file in package_info.files}
        )

    def _output_directory(self, package_name: str, file_name: str) -> str:
        return self._schema.output_directory(package_name, file_name)

    def build_type_data(
        self,
        package_info: PackageInfo,
        criteria: FilterCriteria,
        config: GenerationConfig,
        directory: Optional[str] = None,
    ) -> Optional[ScriptTemplateData]:
        """Interfaces, enums and schemas for the package, or for one output directory of it."""

        files = [
            proto_file
            for proto_file in package_info.files
            if directory is None or self._output_directory(package_info.name, proto_file.name) == directory
        ]
        messages = self._message_collector.collect(files, criteria).items
        enums = self._enum_collector.collect(files, criteria).items
        if not messages and not enums:
            return None

        from_dir = directory if directory is not None else package_info.path
        context = BuildContext(config, package_info)
        script_messages = [
            self._transform_message(message, package_info, from_dir, context)
            for message in messages
        ]
        script_enums = [self._transform_enum(enum) for enum in enums]

        return ScriptTemplateData(
            package_name=package_info.name,
            package_path=package_info.path,
            module_name=to_module_name(package_info.name, config.module_name),
            source_path=files[0].name if files else package_info.source_path,
            directory=from_dir,
            api_structure=config.js_structure.value,
            js_namespace=to_js_namespace(package_info.name, config.js_namespace),
            messages=script_messages,
            enums=script_enums,
            external_imports=context.import_groups(),
            schemas=[self._message_schema(message) for message in script_messages],
            base_name=to_base_name(package_info.name),
            factory_name=to_factory_name(package_info.name),
            deserializer_name=to_deserializer_name(package_info.name),
            schema_registry_name=to_schema_registry_name(package_info.name),
        )

    def _transform_message(
        self,
        message: model.Message,
        package_info: PackageInfo,
        from_dir: str,
        context: BuildContext,
    ) -> ScriptMessageInfo:
        ts_name = self._script_type_name(message)
        fields = [
            self._field_info(item, message, package_info, from_dir, context)
            for item in message.fields
        ]
        return ScriptMessageInfo(
            name=message.name,
            ts_name=ts_name,
            package_name=message.package,
            full_name=message.full_name,
            proto_file=message.file_name,
            method_name=f"new{ts_name}",
            comment=message.comment,
            fields=fields,
            is_nested=message.is_nested,
            oneof_groups=[oneof.name for oneof in message.oneofs if not oneof.is_synthetic],
        )

    def _transform_enum(self, enum: model.Enum) -> ScriptEnumInfo:
        return ScriptEnumInfo(
            name=enum.name,
            ts_name=self._script_type_name(enum),
            package_name=enum.package,
            full_name=enum.full_name,
            proto_file=enum.file_name,
            comment=enum.comment,
            values=[
                ScriptEnumValue(name=value.name, ts_name=value.name, number=value.number, comment=value.comment)
                for value in enum.values
            ],
        )

    def _field_info(
        self,
        item: model.Field,
        message: model.Message,
        package_info: PackageInfo,
        from_dir: str,
        context: BuildContext,
    ) -> ScriptFieldInfo:
        owner = f"{message.full_name}.{item.name}"
        info = ScriptFieldInfo(
            name=item.name,
            ts_name=item.json_name or lower_camel_from_snake(item.name),
            ts_type="any",
            number=item.number,
            default_value="undefined",
            is_optional=item.proto3_optional,
            is_repeated=item.is_repeated,
            comment=item.comment,
        )

        oneof = (
            message.oneofs[item.oneof_index]
            if item.oneof_index is not None and item.oneof_index < len(message.oneofs)
            else None
        )
        if oneof is not None and not oneof.is_synthetic:
            info.is_oneof = True
            info.oneof_group = oneof.name

        if item.kind is model.FieldKind.SCALAR:
            info.ts_type, info.default_value, info.python_default = _SCALAR_TYPES.get(
                item.scalar or "", ("any", "undefined", None)
            )
        elif item.kind is model.FieldKind.ENUM:
            enum = require_resolved(item.resolved_type, owner, item.type_name)
            info.ts_type = self._reference_type(enum, package_info, from_dir, context, owner)
            first = enum.values[0] if isinstance(enum, model.Enum) and enum.values else None
            info.default_value = f"{info.ts_type}.{first.name}" if first else "0"
            info.python_default = first.number if first else 0
        elif item.kind is model.FieldKind.MESSAGE:
            target = require_resolved(item.resolved_type, owner, item.type_name)
            info.message_type = target.full_name
            info.message_package = target.package
            info.is_nested_type = target.is_nested
            info.ts_type = self._reference_type(target, package_info, from_dir, context, owner)
        elif item.kind is model.FieldKind.MAP and item.map_entry is not None:
            key_type = self._map_side_type(
                item.map_entry.key_kind,
                item.map_entry.key_scalar,
                item.map_entry.key_resolved_type,
                item.map_entry.key_type_name,
                package_info,
                from_dir,
                context,
                owner,
            )
            value_type = self._map_side_type(
                item.map_entry.value_kind,
                item.map_entry.value_scalar,
                item.map_entry.value_resolved_type,
                item.map_entry.value_type_name,
                package_info,
                from_dir,
                context,
                owner,
            )
            info.is_map = True
            info.ts_type = f"Record<{key_type}, {value_type}>"
            info.default_value = "{}"
            info.python_default = {}
            value_target = item.map_entry.value_resolved_type
            if item.map_entry.value_kind is model.FieldKind.MESSAGE and value_target is not None:
                info.message_type = value_target.full_name
                info.message_package = value_target.package

        if info.is_repeated:
            info.ts_type = f"{info.ts_type}[]"
            info.default_value = "[]"
            info.python_default = []
        if info.is_optional:
            info.ts_type = f"{info.ts_type} | undefined"
            info.python_default = None
        return info

    def _map_side_type(
        self,
        kind: model.FieldKind,
        scalar: Optional[str],
        resolved: Optional[model.ProtoType],
        type_name: Optional[str],
        package_info: PackageInfo,
        from_dir: str,
        context: BuildContext,
        owner: str,
    ) -> str:
        if kind is model.FieldKind.SCALAR:
            return _SCALAR_TYPES.get(scalar or "", ("any", "", None))[0]
        target = require_resolved(resolved, owner, type_name)
        return self._reference_type(target, package_info, from_dir, context, owner)

    def _reference_type(
        self,
        target: model.ProtoType,
        package_info: PackageInfo,
        from_dir: str,
        context: BuildContext,
        owner: str,
    ) -> str:
        """Resolve the script type name of a referenced type and record its import."""

        mapping = get_mapping(target.full_name)
        if mapping is not None:
            native = mapping.for_target(SCRIPT_TARGET)
            if native.import_source and not native.is_native:
                context.add_type_import(native.import_source, native.native_type)
            return native.native_type
        self._register_type_import(target, package_info, from_dir, context, owner, local=False)
        return self._script_type_name(target)

    def _register_type_import(
        self,
        target: model.ProtoType,
        package_info: PackageInfo,
        from_dir: str,
        context: BuildContext,
        owner: str,
        *,
        local: bool,
    ) -> None:
        mapping = get_mapping(target.full_name)
        if mapping is not None:
            native = mapping.for_target(SCRIPT_TARGET)
            if native.import_source and not native.is_native:
                context.add_type_import(native.import_source, native.native_type)
            return

        defining_file = self._schema.defining_file(target, owner)
        type_name = self._script_type_name(target)

        target_dir = self._output_directory(target.package, defining_file.name)
        if target.package != package_info.name:
            context.add_type_import(relative_import(from_dir, target_dir, INTERFACES_SUFFIX), type_name)
            return

        if not local and calculate_relative_path(from_dir, target_dir) == ".":
            # Declared in the same interfaces file.
            return
        context.add_type_import(relative_import(from_dir, target_dir, INTERFACES_SUFFIX), type_name)

    def _script_type_name(self, proto_type: model.ProtoType) -> str:
        return flatten_type_name(proto_type.full_name, proto_type.package)

    def _message_schema(self, message: ScriptMessageInfo) -> MessageSchemaInfo:
        fields = []
        for info in message.fields:
            if info.is_map:
                field_type = SchemaFieldType.MAP
            elif info.is_repeated:
                field_type = SchemaFieldType.REPEATED
            elif info.message_type:
                field_type = SchemaFieldType.MESSAGE
            else:
                field_type = _schema_scalar_type(info.ts_type)
            map_key, map_value = _split_record(info.ts_type) if info.is_map else ("", "")
            fields.append(
                FieldSchemaInfo(
                    name=info.ts_name,
                    type=field_type,
                    id=info.number,
                    message_type=info.message_type,
                    repeated=info.is_repeated,
                    map_key_type=map_key,
                    map_value_type=map_value,
                    oneof_group=info.oneof_group,
                    optional=info.is_optional,
                )
            )
        return MessageSchemaInfo(
            name=message.name,
            full_name=message.full_name,
            fields=fields,
            oneof_groups=list(message.oneof_groups),
        )

    # ------------------------------------------------------------------
    # Schemas and factories
    # ------------------------------------------------------------------
    def build_package_schema_data(
        self,
        package_info: PackageInfo,
        config: GenerationConfig,
    ) -> ScriptTemplateData:
        """Aggregator importing every sub-directory ``schemas`` file of the package."""

        registry_name = to_schema_registry_name(package_info.name)
        schema_imports: List[SchemaImport] = []
        for directory in self.type_directories(package_info):
            relative = calculate_relative_path(package_info.path, directory)
            if relative == ".":
                continue
            schema_imports.append(
                SchemaImport(
                    registry_name=registry_name,
                    alias=_schema_alias(directory),
                    import_path=f"{relative}/{SCHEMAS_SUFFIX}",
                )
            )
        schema_imports.sort(key=lambda item: item.import_path)

        return ScriptTemplateData(
            package_name=package_info.name,
            package_path=package_info.path,
            module_name=to_module_name(package_info.name, config.module_name),
            source_path=package_info.source_path,
            directory=package_info.path,
            schema_registry_name=registry_name,
            schema_imports=schema_imports,
        )

    def build_factory_data(
        self,
        package_info: PackageInfo,
        criteria: FilterCriteria,
        config: GenerationConfig,
    ) -> Optional[ScriptTemplateData]:
        """Factory and deserializer data with an explicit dispatch table."""

        messages = self._message_collector.collect(package_info.files, criteria).items
        if not messages:
            return None

        factory_dir = package_info.path
        script_messages = [
            self._transform_message(
                message,
                package_info,
                self._output_directory(package_info.name, message.file_name),
                BuildContext(config, package_info),
            )
            for message in messages
        ]

        context = BuildContext(config, package_info)
        directories: Set[str] = set()
        for info in script_messages:
            message_dir = self._output_directory(package_info.name, info.proto_file)
            directories.add(message_dir)
            context.add_type_import(relative_import(factory_dir, message_dir, INTERFACES_SUFFIX), info.ts_name)
            context.add_type_import(relative_import(factory_dir, message_dir, MODELS_SUFFIX), info.ts_name)

        registry_name = to_schema_registry_name(package_info.name)
        schema_imports = sorted(
            (
                SchemaImport(
                    registry_name=registry_name,
                    alias=_schema_alias(directory),
                    import_path=relative_import(factory_dir, directory, SCHEMAS_SUFFIX),
                )
                for directory in directories
            ),
            key=lambda item: item.import_path,
        )

        dependencies, delegates = self._factory_dependencies(script_messages, package_info)
        dispatch = build_dispatch_table(package_info.name, script_messages, delegates)

        return ScriptTemplateData(
            package_name=package_info.name,
            package_path=package_info.path,
            module_name=to_module_name(package_info.name, config.module_name),
            source_path=package_info.source_path,
            directory=factory_dir,
            messages=script_messages,
            import_groups=context.import_groups(),
            schema_imports=schema_imports,
            dependencies=dependencies,
            base_name=to_base_name(package_info.name),
            factory_name=to_factory_name(package_info.name),
            deserializer_name=to_deserializer_name(package_info.name),
            schema_registry_name=registry_name,
            dispatch=dispatch,
        )

    def _factory_dependencies(
        self,
        messages: Iterable[ScriptMessageInfo],
        package_info: PackageInfo,
    ) -> Tuple[List[FactoryDependency], Dict[str, FactoryDependency]]:
        by_package: Dict[str, FactoryDependency] = {}
        delegates: Dict[str, FactoryDependency] = {}
        for message in messages:
            for info in message.fields:
                if not info.message_type or not info.message_package:
                    continue
                if info.message_package == package_info.name or get_mapping(info.message_type):
                    continue
                dependency = by_package.get(info.message_package)
                if dependency is None:
                    factory_name = to_factory_name(info.message_package)
                    relative = relative_path(package_info.path, info.message_package)
                    dependency = FactoryDependency(
                        package_name=info.message_package,
                        factory_name=factory_name,
                        import_path=f"{relative}/{FACTORY_SUFFIX}",
                        instance_name=to_camel_case(factory_name),
                    )
                    by_package[info.message_package] = dependency
                delegates[info.message_type] = dependency
        dependencies = [by_package[name] for name in sorted(by_package)]
        return dependencies, delegates


def build_dispatch_table(
    package_name: str,
    messages: Iterable[ScriptMessageInfo],
    delegates: Optional[Mapping[str, FactoryDependency]] = None,
) -> FactoryDispatchTable:
    """Build the table mapping each message's full name to a constructor closure."""

    table = FactoryDispatchTable(package_name)
    for message in messages:
        table.register(
            FactoryMethod(
                full_name=message.full_name,
                ts_name=message.ts_name,
                method_name=message.method_name,
                constructor=_make_constructor(message),
            )
        )
    for full_name, dependency in (delegates or {}).items():
        table.register_delegate(full_name, dependency)
    return table


def _make_constructor(message: ScriptMessageInfo) -> Constructor:
    defaults = [(info.ts_name, info.python_default) for info in message.fields]
    known = {name for name, _ in defaults}

    def construct(data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        instance: Dict[str, Any] = {}
        for name, default in defaults:
            # Fresh containers per instance.
            if isinstance(default, list):
                default = []
            elif isinstance(default, dict):
                default = {}
            instance[name] = default
        if data:
            for key, value in data.items():
                if key in known:
                    instance[key] = value
        return instance

    construct.__name__ = message.method_name
    return construct


def _schema_alias(directory: str) -> str:
    name = posixpath.basename(directory.rstrip("/"))
    if not name or name == ".":
        name = "root"
    return f"{to_camel_case(name)}Schemas"


def _schema_scalar_type(ts_type: str) -> SchemaFieldType:
    base = ts_type.replace(" | undefined", "")
    if base == "number":
        return SchemaFieldType.NUMBER
    if base == "boolean":
        return SchemaFieldType.BOOLEAN
    if base == "string" or base == "Uint8Array":
        return SchemaFieldType.STRING
    # Enums travel as their numeric value.
    return SchemaFieldType.NUMBER


def _split_record(ts_type: str) -> Tuple[str, str]:
    base = ts_type.replace(" | undefined", "")
    inner = base[len("Record<"):-1] if base.startswith("Record<") and base.endswith(">") else ""
    key, _, value = inner.partition(", ")
    return key, value


__all__ = [
    "FactoryDependency",
    "FactoryDispatchTable",
    "FactoryLookup",
    "FactoryLookupStatus",
    "FactoryMethod",
    "FieldSchemaInfo",
    "ImportGroup",
    "MessageSchemaInfo",
    "SchemaFieldType",
    "SchemaImport",
    "ScriptDataBuilder",
    "ScriptEnumInfo",
    "ScriptEnumValue",
    "ScriptFieldInfo",
    "ScriptMessageInfo",
    "ScriptTemplateData",
    "build_dispatch_table",
]
