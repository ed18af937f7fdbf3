"""Data structures shared by the backend and script data builders."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

from .. import model
from ..config import GenerationConfig
from ..errors import TypeResolutionError
from ..paths import ImportInfo, ImportMap, package_path, type_output_directory


@dataclass(frozen=True, slots=True)
class PackageInfo:
    """One schema package and the files that declare it."""

    name: str
    path: str
    go_package: str
    files: Tuple[model.ProtoFile, ...] = ()
    has_services: bool = False
    has_messages: bool = False
    has_enums: bool = False

    @classmethod
    def from_files(cls, name: str, files: Sequence[model.ProtoFile]) -> "PackageInfo":
        go_package = files[0].go_import_path if files else ""
        return cls(
            name=name,
            path=package_path(name),
            go_package=go_package,
            files=tuple(files),
            has_services=any(proto_file.services for proto_file in files),
            has_messages=any(proto_file.messages for proto_file in files),
            has_enums=any(proto_file.enums for proto_file in files),
        )

    @property
    def source_path(self) -> str:
        """Primary proto file, used for provenance comments."""

        return self.files[0].name if self.files else ""

    def file_for_service(self, service: model.Service) -> Optional[model.ProtoFile]:
        for proto_file in self.files:
            if any(candidate is service for candidate in proto_file.services):
                return proto_file
        return None


@dataclass(slots=True)
class MethodData:
    """A method that survived filtering, ready for rendering."""

    name: str
    js_name: str
    go_func_name: str
    request_type: str
    response_type: str
    request_ts_type: str
    response_ts_type: str
    is_async: bool = False
    is_server_streaming: bool = False
    comment: str = ""
    should_generate: bool = True


@dataclass(slots=True)
class ServiceData:
    """A service ready for rendering.

    ``methods`` only ever holds methods that passed filtering, in declaration
    order.  It is an empty list, never ``None``, when nothing survived.
    """

    name: str
    go_type: str
    js_name: str
    package_path: str
    package_alias: str
    is_browser_provided: bool = False
    custom_name: str = ""
    comment: str = ""
    methods: List[MethodData] = field(default_factory=list)

    @property
    def method_names(self) -> List[str]:
        return [method.name for method in self.methods]


@dataclass(slots=True)
class FieldInfo:
    name: str
    type: str
    is_repeated: bool = False
    is_map: bool = False


@dataclass(slots=True)
class MessageInfo:
    """Backend view of a message: its qualified Go type."""

    name: str
    go_type: str
    package_path: str
    fields: List[FieldInfo] = field(default_factory=list)


@dataclass(slots=True)
class EnumInfo:
    name: str
    go_type: str
    package_path: str
    values: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ImportGroup:
    """Types imported from one module path."""

    import_path: str
    types: List[str] = field(default_factory=list)


class BuildContext:
    """Per-package scratch space for one build call.

    Holds the active configuration, the aliased backend imports and the
    script type imports.  A new context is created for every package build
    and discarded afterwards, so concurrent builds of different packages
    never share import state.
    """

    def __init__(self, config: GenerationConfig, package: Optional[PackageInfo] = None) -> None:
        self.config = config
        self.package = package
        self.imports = ImportMap()
        self._type_imports: Dict[str, Set[str]] = {}

    def alias_for(self, import_path: str, preferred: Optional[str] = None) -> str:
        return self.imports.alias_for(import_path, preferred)

    def get_imports(self) -> List[ImportInfo]:
        return self.imports.imports()

    @property
    def import_map(self) -> Dict[str, str]:
        return {info.path: info.alias for info in self.get_imports()}

    def add_type_import(self, import_path: str, type_name: str) -> None:
        self._type_imports.setdefault(import_path, set()).add(type_name)

    def import_groups(self) -> List[ImportGroup]:
        """Script imports grouped by module path, sorted by path then type name."""

        return [
            ImportGroup(import_path=path, types=sorted(self._type_imports[path]))
            for path in sorted(self._type_imports)
        ]


class SchemaIndex:
    """Read-only lookup of the files that make up the schema graph."""

    def __init__(self, files: Mapping[str, model.ProtoFile]) -> None:
        self._files = dict(files)
        self._package_directories: FrozenSet[str] = frozenset(
            posixpath.normpath(package_path(proto_file.package) or ".") for proto_file in self._files.values()
        )

    @classmethod
    def of(cls, files: Sequence[model.ProtoFile]) -> "SchemaIndex":
        return cls({proto_file.name: proto_file for proto_file in files})

    def __contains__(self, file_name: object) -> bool:
        return file_name in self._files

    def file(self, file_name: str) -> Optional[model.ProtoFile]:
        return self._files.get(file_name)

    def defining_file(self, proto_type: model.ProtoType, owner: str) -> model.ProtoFile:
        """Return the file declaring ``proto_type`` or raise :class:`TypeResolutionError`."""

        proto_file = self._files.get(proto_type.file_name)
        if proto_file is None:
            raise TypeResolutionError(
                owner,
                proto_type.full_name,
                f"defining file '{proto_type.file_name or '<unknown>'}' is not part of the schema graph",
            )
        return proto_file

    def all_files(self) -> List[model.ProtoFile]:
        return list(self._files.values())

    @property
    def package_directories(self) -> FrozenSet[str]:
        return self._package_directories

    def output_directory(self, package_name: str, file_name: str) -> str:
        """Directory of the type files that cover ``file_name`` of ``package_name``."""

        return type_output_directory(
            package_name, posixpath.dirname(file_name) or ".", self._package_directories
        )


def require_resolved(resolved: Optional[model.ProtoType], owner: str, type_name: Optional[str]) -> model.ProtoType:
    if resolved is None:
        raise TypeResolutionError(owner, type_name or "<unnamed>")
    return resolved


__all__ = [
    "BuildContext",
    "EnumInfo",
    "FieldInfo",
    "ImportGroup",
    "ImportInfo",
    "MessageInfo",
    "MethodData",
    "PackageInfo",
    "SchemaIndex",
    "ServiceData",
    "require_resolved",
]
