"""Inclusion rules for services, methods, messages, enums and packages.

Filters never raise for degenerate input; they annotate each element with
the generation hints the builders need (custom names, async and streaming
flags, browser-provided flag).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Dict, Generic, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

from . import model, options
from .config import GenerationConfig
from .errors import ConfigError
from .naming import to_camel_case

logger = logging.getLogger(__name__)

T = TypeVar("T")

ANNOTATION_PACKAGES: Tuple[str, ...] = (options.ANNOTATION_PACKAGE, "google.protobuf")


def _parse_method_renames(entries: Iterable[str]) -> Dict[str, str]:
    mapping: Dict[str, str] = {}
    for entry in entries:
        if not entry:
            continue
        if ":" not in entry:
            raise ConfigError(
                f"Invalid method rename '{entry}': expected the form 'OldName:NewName'"
            )
        old_name, new_name = entry.split(":", 1)
        old_key = old_name.strip()
        new_value = new_name.strip()
        if not old_key or not new_value:
            raise ConfigError(f"Invalid method rename '{entry}': empty old or new name")
        mapping[old_key] = new_value
    return mapping


@dataclass(slots=True)
class FilterCriteria:
    """Inclusion criteria derived from the plugin parameters."""

    services: Set[str] = field(default_factory=set)
    method_includes: List[str] = field(default_factory=list)
    method_excludes: List[str] = field(default_factory=list)
    method_renames: Dict[str, str] = field(default_factory=dict)
    exclude_all_services: bool = False
    exclude_annotation_packages: bool = True
    exclude_empty_packages: bool = True
    exclude_map_entries: bool = True
    exclude_nested_messages: bool = False
    exclude_nested_enums: bool = False

    @classmethod
    def parse(
        cls,
        services: Sequence[str] = (),
        method_include: Sequence[str] = (),
        method_exclude: Sequence[str] = (),
        method_rename: Sequence[str] = (),
    ) -> "FilterCriteria":
        return cls(
            services={name.strip() for name in services if name.strip()},
            method_includes=[pattern.strip() for pattern in method_include if pattern.strip()],
            method_excludes=[pattern.strip() for pattern in method_exclude if pattern.strip()],
            method_renames=_parse_method_renames(method_rename),
        )

    @classmethod
    def from_config(cls, config: GenerationConfig) -> "FilterCriteria":
        return cls.parse(
            services=config.services,
            method_include=config.method_include,
            method_exclude=config.method_exclude,
            method_rename=config.method_rename,
        )

    @property
    def has_service_filter(self) -> bool:
        return bool(self.services)

    def method_rename(self, original_name: str) -> str:
        return self.method_renames.get(original_name, original_name)


@dataclass(slots=True)
class FilterResult:
    include: bool
    reason: str = ""


@dataclass(slots=True)
class ServiceFilterResult(FilterResult):
    is_browser_provided: bool = False
    custom_name: str = ""


@dataclass(slots=True)
class MethodFilterResult(FilterResult):
    custom_name: str = ""
    is_async: bool = False
    is_server_streaming: bool = False


@dataclass(slots=True)
class PackageFilterResult(FilterResult):
    has_services: bool = False
    has_messages: bool = False
    has_enums: bool = False


@dataclass(slots=True)
class CollectionResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    total_found: int = 0
    files_scanned: int = 0


@dataclass(slots=True)
class FilterStats:
    services_total: int = 0
    services_included: int = 0
    services_excluded: int = 0
    methods_total: int = 0
    methods_included: int = 0
    methods_excluded: int = 0
    messages_total: int = 0
    enums_total: int = 0
    packages_total: int = 0

    def add_service_result(self, result: ServiceFilterResult) -> None:
        self.services_total += 1
        if result.include:
            self.services_included += 1
        else:
            self.services_excluded += 1

    def add_method_result(self, result: MethodFilterResult) -> None:
        self.methods_total += 1
        if result.include:
            self.methods_included += 1
        else:
            self.methods_excluded += 1

    def add_collection_stats(self, messages: int, enums: int, packages: int) -> None:
        self.messages_total += messages
        self.enums_total += enums
        self.packages_total += packages

    def merge(self, other: "FilterStats") -> None:
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(self, name) + getattr(other, name))

    def summary(self) -> str:
        return (
            f"Filtering summary: {self.services_included}/{self.services_total} services, "
            f"{self.methods_included}/{self.methods_total} methods, "
            f"{self.messages_total} messages, {self.enums_total} enums "
            f"from {self.packages_total} packages"
        )


class ServiceFilter:
    """Decide which services are generated.

    Precedence: exclusion annotation, then the configured service list, then
    default inclusion.
    """

    def should_include(self, service: model.Service, criteria: FilterCriteria) -> ServiceFilterResult:
        if options.is_service_excluded(service):
            return ServiceFilterResult(False, "service marked with wasm_service_exclude")
        if criteria.exclude_all_services:
            return ServiceFilterResult(False, "client generation disabled")

        is_browser = options.is_browser_provided(service)
        custom_name = options.custom_service_name(service)

        if criteria.has_service_filter:
            if service.name in criteria.services:
                return ServiceFilterResult(
                    True,
                    "service explicitly listed",
                    is_browser_provided=is_browser,
                    custom_name=custom_name,
                )
            return ServiceFilterResult(False, "service not in configured services list")

        return ServiceFilterResult(
            True,
            "included by default",
            is_browser_provided=is_browser,
            custom_name=custom_name,
        )

    def filter_services(
        self, files: Iterable[model.ProtoFile], criteria: FilterCriteria
    ) -> Tuple[List[Tuple[model.Service, ServiceFilterResult]], FilterStats]:
        results: List[Tuple[model.Service, ServiceFilterResult]] = []
        stats = FilterStats()
        for proto_file in files:
            for service in proto_file.services:
                result = self.should_include(service, criteria)
                stats.add_service_result(result)
                if result.include:
                    results.append((service, result))
                else:
                    logger.debug("Skipping service %s: %s", service.full_name, result.reason)
        return results, stats

    def browser_provided_services(
        self, files: Iterable[model.ProtoFile], criteria: FilterCriteria
    ) -> List[Tuple[model.Service, ServiceFilterResult]]:
        included, _ = self.filter_services(files, criteria)
        return [(service, result) for service, result in included if result.is_browser_provided]


class MethodFilter:
    """Decide which methods of a service are generated.

    Precedence: exclusion annotation, client streaming, exclude patterns,
    include patterns, then default inclusion.
    """

    def should_include(self, method: model.Method, criteria: FilterCriteria) -> MethodFilterResult:
        if options.is_method_excluded(method):
            return MethodFilterResult(False, "method marked with wasm_method_exclude")
        if method.client_streaming:
            return MethodFilterResult(False, "client streaming methods are not supported")

        hints = {
            "custom_name": options.custom_method_name(method),
            "is_async": options.is_async_method(method),
            "is_server_streaming": method.server_streaming,
        }

        for pattern in criteria.method_excludes:
            if fnmatchcase(method.name, pattern):
                return MethodFilterResult(False, f"method matches exclude pattern {pattern}")

        if criteria.method_includes:
            for pattern in criteria.method_includes:
                if fnmatchcase(method.name, pattern):
                    return MethodFilterResult(True, f"method matches include pattern {pattern}", **hints)
            return MethodFilterResult(False, "method matches no include pattern")

        return MethodFilterResult(True, "included by default", **hints)

    def filter_methods(
        self, service: model.Service, criteria: FilterCriteria
    ) -> Tuple[List[Tuple[model.Method, MethodFilterResult]], FilterStats]:
        results: List[Tuple[model.Method, MethodFilterResult]] = []
        stats = FilterStats()
        for method in service.methods:
            result = self.should_include(method, criteria)
            stats.add_method_result(result)
            if result.include:
                results.append((method, result))
            else:
                logger.debug("Skipping method %s: %s", method.full_name, result.reason)
        return results, stats

    def has_any_methods(self, service: model.Service, criteria: FilterCriteria) -> bool:
        return any(self.should_include(method, criteria).include for method in service.methods)

    def js_name(
        self,
        method: model.Method,
        criteria: FilterCriteria,
        result: Optional[MethodFilterResult] = None,
    ) -> str:
        """Script-side method name: annotation, then configured rename, then camelCase."""

        custom = result.custom_name if result is not None else options.custom_method_name(method)
        if custom:
            return custom
        renamed = criteria.method_rename(method.name)
        if renamed != method.name:
            return renamed
        return to_camel_case(method.name)


class MessageCollector:
    """Flatten the messages of a set of files, nested ones included."""

    def collect(
        self, files: Iterable[model.ProtoFile], criteria: FilterCriteria
    ) -> CollectionResult[model.Message]:
        result: CollectionResult[model.Message] = CollectionResult()
        for proto_file in files:
            result.files_scanned += 1
            for message in proto_file.messages:
                self._collect(message, criteria, result)
        return result

    def _collect(
        self,
        message: model.Message,
        criteria: FilterCriteria,
        result: CollectionResult[model.Message],
    ) -> None:
        result.total_found += 1
        if message.is_map_entry and criteria.exclude_map_entries:
            return
        if message.is_nested and criteria.exclude_nested_messages:
            return
        result.items.append(message)
        for nested in message.nested_messages:
            self._collect(nested, criteria, result)

    def has_any_messages(self, files: Iterable[model.ProtoFile], criteria: FilterCriteria) -> bool:
        return bool(self.collect(files, criteria).items)


class EnumCollector:
    """Flatten the enums of a set of files, including enums nested in messages."""

    def collect(
        self, files: Iterable[model.ProtoFile], criteria: FilterCriteria
    ) -> CollectionResult[model.Enum]:
        result: CollectionResult[model.Enum] = CollectionResult()
        for proto_file in files:
            result.files_scanned += 1
            for enum in proto_file.enums:
                result.total_found += 1
                result.items.append(enum)
            for message in proto_file.messages:
                self._collect_nested(message, criteria, result)
        return result

    def _collect_nested(
        self,
        message: model.Message,
        criteria: FilterCriteria,
        result: CollectionResult[model.Enum],
    ) -> None:
        for enum in message.nested_enums:
            result.total_found += 1
            if not criteria.exclude_nested_enums:
                result.items.append(enum)
        for nested in message.nested_messages:
            self._collect_nested(nested, criteria, result)

    def has_any_enums(self, files: Iterable[model.ProtoFile], criteria: FilterCriteria) -> bool:
        return bool(self.collect(files, criteria).items)


class PackageFilter:
    """Group files by package and drop annotation or empty packages."""

    def __init__(
        self,
        message_collector: Optional[MessageCollector] = None,
        enum_collector: Optional[EnumCollector] = None,
    ) -> None:
        self._messages = message_collector or MessageCollector()
        self._enums = enum_collector or EnumCollector()

    def should_include(
        self, package_name: str, files: Sequence[model.ProtoFile], criteria: FilterCriteria
    ) -> PackageFilterResult:
        if criteria.exclude_annotation_packages and package_name in ANNOTATION_PACKAGES:
            return PackageFilterResult(False, "annotation package")

        has_services = any(proto_file.services for proto_file in files)
        has_messages = self._messages.has_any_messages(files, criteria)
        has_enums = self._enums.has_any_enums(files, criteria)

        if criteria.exclude_empty_packages and not (has_services or has_messages or has_enums):
            return PackageFilterResult(False, "package has no services, messages or enums")

        kinds = [
            label
            for label, present in (
                ("services", has_services),
                ("messages", has_messages),
                ("enums", has_enums),
            )
            if present
        ]
        reason = "package has " + ", ".join(kinds) if kinds else "empty package kept"
        return PackageFilterResult(
            True,
            reason,
            has_services=has_services,
            has_messages=has_messages,
            has_enums=has_enums,
        )

    def filter_packages(
        self,
        files: Iterable[model.ProtoFile],
        criteria: FilterCriteria,
        files_to_generate: Optional[Iterable[str]] = None,
    ) -> Tuple[Dict[str, List[model.ProtoFile]], FilterStats]:
        """Return included packages mapped to their files, in first-seen order."""

        wanted = set(files_to_generate) if files_to_generate is not None else None
        grouped: Dict[str, List[model.ProtoFile]] = {}
        for proto_file in files:
            if wanted is not None and proto_file.name not in wanted:
                continue
            grouped.setdefault(proto_file.package or "", []).append(proto_file)

        stats = FilterStats()
        included: Dict[str, List[model.ProtoFile]] = {}
        for package_name, package_files in grouped.items():
            stats.packages_total += 1
            result = self.should_include(package_name, package_files, criteria)
            if result.include:
                included[package_name] = package_files
            else:
                logger.debug("Skipping package %s: %s", package_name or "<root>", result.reason)
        return included, stats


__all__ = [
    "ANNOTATION_PACKAGES",
    "CollectionResult",
    "EnumCollector",
    "FilterCriteria",
    "FilterResult",
    "FilterStats",
    "MessageCollector",
    "MethodFilter",
    "MethodFilterResult",
    "PackageFilter",
    "PackageFilterResult",
    "ServiceFilter",
    "ServiceFilterResult",
]
