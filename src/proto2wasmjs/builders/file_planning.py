"""Map logical output files to physical filenames.

Generators first ask the :class:`FilePlanner` for a :class:`FilePlan`, open a
handle for every planned file, validate the resulting
:class:`GeneratedFileSet` and only then render.  A plan that cannot be fully
opened therefore fails before any content is produced.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .. import model
from ..config import GenerationConfig
from ..errors import MissingRequiredFilesError
from ..filters import EnumCollector, FilterCriteria, MessageCollector, ServiceFilter
from ..naming import to_base_name, to_camel_case
from ..options import is_factory_file
from ..paths import calculate_relative_path, join_paths
from .backend import BackendTemplateData
from .shared import PackageInfo, SchemaIndex

logger = logging.getLogger(__name__)

H = TypeVar("H")


class FileType(str, Enum):
    """Kind of content a planned file carries; selects the template and data."""

    WASM = "wasm"
    EXAMPLE = "example"
    BUILD_SCRIPT = "script"
    SERVICE_CLIENT = "service_client"
    INTERFACES = "interfaces"
    MODELS = "models"
    SCHEMAS = "schemas"
    PACKAGE_SCHEMAS = "package_schemas"
    FACTORY = "factory"
    DESERIALIZER = "deserializer"


@dataclass(frozen=True, slots=True)
class ContentHints:
    has_services: bool = False
    has_messages: bool = False
    has_enums: bool = False
    has_browser_services: bool = False
    is_example: bool = False
    is_build_script: bool = False


@dataclass(slots=True)
class FileSpec:
    """A file to generate.

    ``name`` is the logical name used to look up data and handles; ``filename``
    is the output path relative to the protoc output directory.
    """

    name: str
    filename: str
    type: FileType
    required: bool = False
    content_hints: ContentHints = field(default_factory=ContentHints)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class FilePlan:
    package_name: str
    specs: List[FileSpec] = field(default_factory=list)
    config: Optional[GenerationConfig] = None

    def get_spec(self, name: str) -> Optional[FileSpec]:
        for spec in self.specs:
            if spec.name == name:
                return spec
        return None

    def __len__(self) -> int:
        return len(self.specs)


class GeneratedFileSet(Generic[H]):
    """Handles opened for a :class:`FilePlan`, keyed by logical file name.

    A handle may be ``None`` when the opener declined to create the file;
    :meth:`validate_file_set` reports such gaps for required files.
    """

    def __init__(self, plan: FilePlan, files: Dict[str, Optional[H]]) -> None:
        self.plan = plan
        self.files = files

    @classmethod
    def from_plan(cls, plan: FilePlan, open_file: Callable[[FileSpec], Optional[H]]) -> "GeneratedFileSet[H]":
        files: Dict[str, Optional[H]] = {}
        for spec in plan.specs:
            files[spec.name] = open_file(spec)
            logger.debug("Opened %s -> %s", spec.name, spec.filename)
        return cls(plan, files)

    def get_file(self, name: str) -> Optional[H]:
        return self.files.get(name)

    def has_file(self, name: str) -> bool:
        return self.files.get(name) is not None

    def get_file_spec(self, name: str) -> Optional[FileSpec]:
        return self.plan.get_spec(name)

    def get_files_by_type(self, file_type: FileType) -> Dict[str, Optional[H]]:
        return {
            spec.name: self.files.get(spec.name)
            for spec in self.plan.specs
            if spec.type is file_type
        }

    def get_required_files(self) -> Dict[str, Optional[H]]:
        return {spec.name: self.files.get(spec.name) for spec in self.plan.specs if spec.required}

    def get_all_filenames(self) -> List[str]:
        return [spec.filename for spec in self.plan.specs]

    def validate_file_set(self) -> None:
        """Raise :class:`MissingRequiredFilesError` naming every required file without a handle."""

        missing = [
            spec.name
            for spec in self.plan.specs
            if spec.required and self.files.get(spec.name) is None
        ]
        if missing:
            raise MissingRequiredFilesError(self.plan.package_name, missing)


class FilePlanner:
    """Decide which files each target writes for a package, and where."""

    def __init__(
        self,
        *,
        schema: Optional[SchemaIndex] = None,
        service_filter: Optional[ServiceFilter] = None,
        message_collector: Optional[MessageCollector] = None,
        enum_collector: Optional[EnumCollector] = None,
    ) -> None:
        self._schema = schema
        self._service_filter = service_filter or ServiceFilter()
        self._message_collector = message_collector or MessageCollector()
        self._enum_collector = enum_collector or EnumCollector()

    def plan_backend_files(self, data: BackendTemplateData, config: GenerationConfig) -> FilePlan:
        package_dir = data.package_name.replace(".", "/")
        specs = [
            FileSpec(
                name="wasm",
                filename=join_paths(package_dir, f"{to_base_name(data.package_name)}.wasm.go"),
                type=FileType.WASM,
                required=True,
                content_hints=ContentHints(
                    has_services=data.has_services,
                    has_browser_services=data.has_browser_services,
                ),
            ),
            FileSpec(
                name="main",
                filename=join_paths(package_dir, "main.go.example"),
                type=FileType.EXAMPLE,
                required=True,
                content_hints=ContentHints(is_example=True),
            ),
        ]
        if config.generate_build_script:
            specs.append(
                FileSpec(
                    name="build",
                    filename=config.wasm_output_path("build.sh"),
                    type=FileType.BUILD_SCRIPT,
                    content_hints=ContentHints(is_build_script=True),
                )
            )
        return FilePlan(package_name=data.package_name, specs=specs, config=config)

    def plan_script_files(
        self,
        package_info: PackageInfo,
        criteria: FilterCriteria,
        config: GenerationConfig,
    ) -> FilePlan:
        specs: List[FileSpec] = []

        if config.generate_clients:
            included, _ = self._service_filter.filter_services(package_info.files, criteria)
            for service, result in included:
                specs.append(
                    FileSpec(
                        name=f"client_{service.name}",
                        filename=config.ts_output_path(
                            join_paths(package_info.path, f"{to_camel_case(service.name)}Client.ts")
                        ),
                        type=FileType.SERVICE_CLIENT,
                        required=True,
                        content_hints=ContentHints(
                            has_services=True,
                            has_browser_services=result.is_browser_provided,
                        ),
                        metadata={"service": service},
                    )
                )

        if config.generate_types:
            has_messages = False
            schema = self._schema or SchemaIndex.of(package_info.files)
            by_directory: Dict[str, List[model.ProtoFile]] = {}
            for proto_file in package_info.files:
                directory = schema.output_directory(package_info.name, proto_file.name)
                by_directory.setdefault(directory, []).append(proto_file)
            directories = sorted(by_directory)
            for directory in directories:
                files = by_directory[directory]
                dir_messages = self._message_collector.has_any_messages(files, criteria)
                dir_enums = self._enum_collector.has_any_enums(files, criteria)
                if not (dir_messages or dir_enums):
                    continue
                has_messages = has_messages or dir_messages
                specs.extend(self._type_specs(directory, dir_messages, dir_enums, config))

            if has_messages:
                wants_factory = config.generate_factories or any(
                    is_factory_file(proto_file) for proto_file in package_info.files
                )
                if wants_factory:
                    specs.append(self._package_spec(package_info, "factory", FileType.FACTORY, config))
                specs.append(self._package_spec(package_info, "deserializer", FileType.DESERIALIZER, config))
                if all(calculate_relative_path(package_info.path, directory) != "." for directory in directories):
                    specs.append(
                        self._package_spec(
                            package_info, "package_schemas", FileType.PACKAGE_SCHEMAS, config, "schemas.ts"
                        )
                    )

        return FilePlan(package_name=package_info.name, specs=specs, config=config)

    def _type_specs(
        self, directory: str, has_messages: bool, has_enums: bool, config: GenerationConfig
    ) -> List[FileSpec]:
        def spec(kind: FileType, required: bool) -> FileSpec:
            return FileSpec(
                name=f"{kind.value}:{directory}",
                filename=config.ts_output_path(join_paths(directory, f"{kind.value}.ts")),
                type=kind,
                required=required,
                content_hints=ContentHints(has_messages=has_messages, has_enums=has_enums),
                metadata={"directory": directory},
            )

        return [
            spec(FileType.INTERFACES, True),
            spec(FileType.MODELS, False),
            spec(FileType.SCHEMAS, False),
        ]

    def _package_spec(
        self,
        package_info: PackageInfo,
        name: str,
        kind: FileType,
        config: GenerationConfig,
        basename: Optional[str] = None,
    ) -> FileSpec:
        return FileSpec(
            name=name,
            filename=config.ts_output_path(
                posixpath.join(package_info.path, basename or f"{kind.value}.ts")
            ),
            type=kind,
            content_hints=ContentHints(has_messages=True),
        )


__all__ = [
    "ContentHints",
    "FilePlan",
    "FilePlanner",
    "FileSpec",
    "FileType",
    "GeneratedFileSet",
]
