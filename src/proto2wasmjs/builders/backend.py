"""Template data for the compiled (Go WASM) target."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .. import model
from ..config import GenerationConfig
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
    to_camel_case,
    to_go_func_name,
    to_js_namespace,
    to_module_name,
)
from ..paths import ImportInfo
from ..wellknown import BACKEND_TARGET, get_mapping
from .shared import (
    BuildContext,
    EnumInfo,
    MessageInfo,
    MethodData,
    PackageInfo,
    SchemaIndex,
    ServiceData,
    require_resolved,
)

logger = logging.getLogger(__name__)

RUNTIME_ALIAS = "wasm"


@dataclass(slots=True)
class BackendTemplateData:
    """Everything the WASM binding template needs for one package."""

    package_name: str
    source_path: str
    go_package: str
    module_name: str
    js_namespace: str
    api_structure: str
    services: List[ServiceData] = field(default_factory=list)
    browser_clients: List[ServiceData] = field(default_factory=list)
    messages: List[MessageInfo] = field(default_factory=list)
    enums: List[EnumInfo] = field(default_factory=list)
    imports: List[ImportInfo] = field(default_factory=list)
    package_map: Dict[str, str] = field(default_factory=dict)

    @property
    def has_services(self) -> bool:
        return bool(self.services)

    @property
    def has_browser_services(self) -> bool:
        return bool(self.browser_clients)

    @property
    def has_messages(self) -> bool:
        return bool(self.messages)

    @property
    def has_enums(self) -> bool:
        return bool(self.enums)


class BackendDataBuilder:
    """Build :class:`BackendTemplateData` for one package at a time.

    The builder only holds read-only collaborators; all mutable state lives in
    the :class:`BuildContext` created inside each :meth:`build_template_data`
    call.
    """

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

    def build_template_data(
        self,
        package_info: PackageInfo,
        browser_services: Sequence[model.Service],
        criteria: FilterCriteria,
        config: GenerationConfig,
    ) -> Optional[BackendTemplateData]:
        """Return template data, or ``None`` when no service of either kind survives."""

        context = BuildContext(config, package_info)
        # Generated bindings always call into the runtime helper package.
        context.alias_for(config.runtime_import_path, RUNTIME_ALIAS)

        services: List[ServiceData] = []
        for proto_file in package_info.files:
            for service in proto_file.services:
                result = self._service_filter.should_include(service, criteria)
                if not result.include or result.is_browser_provided:
                    continue
                data = self._build_service_data(service, proto_file, result, criteria, context)
                if data is not None:
                    services.append(data)

        browser_clients: List[ServiceData] = []
        for service in browser_services:
            result = self._service_filter.should_include(service, criteria)
            if not result.include or not result.is_browser_provided:
                continue
            owner = self._schema.file(service.file_name)
            if owner is None:
                logger.warning(
                    "Browser service %s has no defining file in the request; skipping",
                    service.full_name,
                )
                continue
            data = self._build_service_data(service, owner, result, criteria, context)
            if data is not None:
                browser_clients.append(data)

        if not services and not browser_clients:
            logger.debug("No backend services for package %s", package_info.name)
            return None

        messages = self._collect_messages(package_info, criteria, context)
        enums = self._collect_enums(package_info, criteria, context)

        return BackendTemplateData(
            package_name=package_info.name,
            source_path=package_info.source_path,
            go_package=package_info.go_package,
            module_name=to_module_name(package_info.name, config.module_name),
            js_namespace=to_js_namespace(package_info.name, config.js_namespace),
            api_structure=config.js_structure.value,
            services=services,
            browser_clients=browser_clients,
            messages=messages,
            enums=enums,
            imports=context.get_imports(),
            package_map=context.import_map,
        )

    def _build_service_data(
        self,
        service: model.Service,
        proto_file: model.ProtoFile,
        result: ServiceFilterResult,
        criteria: FilterCriteria,
        context: BuildContext,
    ) -> Optional[ServiceData]:
        included, _ = self._method_filter.filter_methods(service, criteria)
        if not included:
            # A binding without methods has nothing to export.
            logger.debug("Dropping service %s from backend output: no methods", service.full_name)
            return None

        package_path = proto_file.go_import_path
        alias = context.alias_for(package_path)

        methods = []
        for method, method_result in included:
            request = require_resolved(method.input_resolved, method.full_name, method.input_type)
            response = require_resolved(method.output_resolved, method.full_name, method.output_type)
            methods.append(
                MethodData(
                    name=method.name,
                    js_name=self._method_filter.js_name(method, criteria, method_result),
                    go_func_name=to_go_func_name(service.name, method.name),
                    request_type=self._go_type(request, method.full_name, context),
                    response_type=self._go_type(response, method.full_name, context),
                    request_ts_type=flatten_type_name(request.full_name, request.package),
                    response_ts_type=flatten_type_name(response.full_name, response.package),
                    is_async=method_result.is_async,
                    is_server_streaming=method_result.is_server_streaming,
                    comment=method.comment,
                )
            )

        suffix = "Client" if result.is_browser_provided else "Server"
        return ServiceData(
            name=service.name,
            go_type=f"{alias}.{service.name}{suffix}",
            js_name=result.custom_name or to_camel_case(service.name),
            package_path=package_path,
            package_alias=alias,
            is_browser_provided=result.is_browser_provided,
            custom_name=result.custom_name,
            comment=service.comment,
            methods=methods,
        )

    def _go_type(self, proto_type: model.ProtoType, owner: str, context: BuildContext) -> str:
        mapping = get_mapping(proto_type.full_name)
        if mapping is not None:
            native = mapping.for_target(BACKEND_TARGET)
            package_name, _, type_name = native.native_type.rpartition(".")
            alias = context.alias_for(native.import_source, package_name or None)
            return f"{alias}.{type_name}"
        defining_file = self._schema.defining_file(proto_type, owner)
        alias = context.alias_for(defining_file.go_import_path)
        return f"{alias}.{flatten_type_name(proto_type.full_name, proto_type.package)}"

    def _collect_messages(
        self, package_info: PackageInfo, criteria: FilterCriteria, context: BuildContext
    ) -> List[MessageInfo]:
        messages = []
        for message in self._message_collector.collect(package_info.files, criteria).items:
            defining_file = self._schema.defining_file(message, message.full_name)
            messages.append(
                MessageInfo(
                    name=message.name,
                    go_type=self._go_type(message, message.full_name, context),
                    package_path=defining_file.go_import_path,
                )
            )
        return messages

    def _collect_enums(
        self, package_info: PackageInfo, criteria: FilterCriteria, context: BuildContext
    ) -> List[EnumInfo]:
        enums = []
        for enum in self._enum_collector.collect(package_info.files, criteria).items:
            defining_file = self._schema.defining_file(enum, enum.full_name)
            enums.append(
                EnumInfo(
                    name=enum.name,
                    go_type=self._go_type(enum, enum.full_name, context),
                    package_path=defining_file.go_import_path,
                    values=[value.name for value in enum.values],
                )
            )
        return enums


__all__ = ["BackendDataBuilder", "BackendTemplateData", "RUNTIME_ALIAS"]
