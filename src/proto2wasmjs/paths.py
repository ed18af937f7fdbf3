"""Import path and alias calculation."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Collection, Dict, List, Optional

from .naming import to_package_alias


def package_path(package_name: str) -> str:
    """``library.v1`` becomes ``library/v1``."""

    return package_name.replace(".", "/")


def normalize_path(path: str) -> str:
    """Clean ``path`` with forward slashes, keeping a leading ``./`` if present."""

    starts_with_dot = path.startswith("./")
    normalized = posixpath.normpath(path.replace("\\", "/")) if path else "."
    if (
        starts_with_dot
        and normalized != "."
        and not normalized.startswith("./")
        and not normalized.startswith("../")
    ):
        normalized = "./" + normalized
    return normalized


def join_paths(*components: str) -> str:
    parts = [component for component in components if component]
    if not parts:
        return ""
    return normalize_path(posixpath.join(*parts))


def calculate_relative_path(from_dir: str, to_dir: str) -> str:
    """Return the relative path from ``from_dir`` to ``to_dir``.

    Identical directories yield ``"."``; callers that build import
    specifiers must handle that case themselves.  Every other result starts
    with ``./`` or ``../``.
    """

    from_clean = posixpath.normpath(from_dir or ".")
    to_clean = posixpath.normpath(to_dir or ".")
    if from_clean == to_clean:
        return "."
    relative = posixpath.relpath(to_clean, from_clean)
    if relative != "." and not relative.startswith("./") and not relative.startswith("../"):
        relative = "./" + relative
    return relative


def relative_path(from_package_path: str, to_package_name: str) -> str:
    """Relative directory from a package directory to a dotted package name."""

    return calculate_relative_path(from_package_path, package_path(to_package_name))


def relative_import(from_dir: str, to_dir: str, suffix: str) -> str:
    """Build an import specifier such as ``../c/interfaces``."""

    relative = calculate_relative_path(from_dir, to_dir)
    if relative == ".":
        return f"./{suffix}"
    return f"{relative}/{suffix}"


def type_output_directory(package_name: str, source_dir: str, reserved: Collection[str] = ()) -> str:
    """Directory receiving the type files generated from one source directory of a package.

    A source directory below the package directory keeps its location unless
    it lies inside the directory of another package (any entry of
    ``reserved``).  Every other source directory folds into the package
    directory, so two packages never share an output directory.
    """

    root = posixpath.normpath(package_path(package_name) or ".")
    directory = posixpath.normpath(source_dir or ".")
    relative = calculate_relative_path(root, directory)
    if not relative.startswith("./"):
        return root
    ancestor = directory
    while ancestor != root:
        if ancestor in reserved:
            return root
        ancestor = posixpath.dirname(ancestor) or "."
    return directory


def output_file_path(base_output_path: str, package_name: str, file_name: str) -> str:
    return join_paths(base_output_path, package_path(package_name), file_name)


@dataclass(slots=True)
class ImportInfo:
    """An import path together with the alias it is bound to."""

    path: str
    alias: str


@dataclass(slots=True)
class ImportMap:
    """Registry binding import paths to unique aliases.

    A path is bound to exactly one alias and no two paths share an alias.
    Colliding base aliases are de-duplicated by appending a counter.
    """

    _by_path: Dict[str, str] = field(default_factory=dict)
    _taken: Dict[str, str] = field(default_factory=dict)

    def alias_for(self, import_path: str, preferred: Optional[str] = None) -> str:
        existing = self._by_path.get(import_path)
        if existing is not None:
            return existing

        base = preferred or to_package_alias(import_path)
        alias = base
        counter = 2
        while alias in self._taken:
            alias = f"{base}{counter}"
            counter += 1

        self._by_path[import_path] = alias
        self._taken[alias] = import_path
        return alias

    def get(self, import_path: str) -> Optional[str]:
        return self._by_path.get(import_path)

    def __contains__(self, import_path: object) -> bool:
        return import_path in self._by_path

    def __len__(self) -> int:
        return len(self._by_path)

    def imports(self) -> List[ImportInfo]:
        """Registered imports sorted by path."""

        return [ImportInfo(path=path, alias=self._by_path[path]) for path in sorted(self._by_path)]


__all__ = [
    "ImportInfo",
    "ImportMap",
    "calculate_relative_path",
    "join_paths",
    "normalize_path",
    "output_file_path",
    "package_path",
    "relative_import",
    "relative_path",
    "type_output_directory",
]
