"""Name conversion utilities shared by the backend and script builders.

Every helper here is a pure string transform.  None of them raise: malformed
input yields a mechanically derived name rather than an error.
"""

from __future__ import annotations

import re
from typing import List

_PACKAGE_SEPARATORS = re.compile(r"[.\-_]+")
_NON_IDENTIFIER = re.compile(r"[^0-9A-Za-z_]")


def _split_package(package_name: str) -> List[str]:
    return [part for part in _PACKAGE_SEPARATORS.split(package_name) if part]


def to_camel_case(value: str) -> str:
    """Lower-case the first character, leaving the rest untouched."""

    if not value:
        return value
    return value[:1].lower() + value[1:]


def to_pascal_case(value: str) -> str:
    """Upper-case the first character, leaving the rest untouched."""

    if not value:
        return value
    return value[:1].upper() + value[1:]


def to_snake_case(value: str) -> str:
    if not value:
        return value
    pieces: List[str] = []
    for index, char in enumerate(value):
        if index > 0 and char.isupper():
            pieces.append("_")
        pieces.append(char.lower())
    return "".join(pieces)


def lower_camel_from_snake(value: str) -> str:
    """Convert ``snake_case`` into ``lowerCamelCase`` the way protoc derives json names."""

    parts = [part for part in value.split("_") if part]
    if not parts:
        return value
    return to_camel_case(parts[0]) + "".join(to_pascal_case(part) for part in parts[1:])


def to_module_name(package_name: str, override: str = "") -> str:
    """Return the module name for ``package_name``.

    A non-empty ``override`` is returned verbatim for every package so that
    several packages bundled into one run share a single module.
    """

    if override:
        return override
    if not package_name:
        return "services"
    return package_name.replace(".", "_") + "_services"


def to_js_namespace(package_name: str, override: str = "") -> str:
    if override:
        return override
    if not package_name:
        return ""
    return package_name.lower().replace(".", "_").replace("-", "_")


def to_factory_name(package_name: str) -> str:
    return "".join(to_pascal_case(part) for part in _split_package(package_name)) + "Factory"


def to_deserializer_name(package_name: str) -> str:
    return "".join(to_pascal_case(part) for part in _split_package(package_name)) + "Deserializer"


def to_schema_registry_name(package_name: str) -> str:
    """``library.v1`` becomes ``library_v1SchemaRegistry``."""

    if not package_name:
        return "schemaRegistry"
    return to_camel_case(to_base_name(package_name)) + "SchemaRegistry"


def to_base_name(package_name: str) -> str:
    return package_name.replace(".", "_")


def to_go_func_name(service_name: str, method_name: str) -> str:
    return to_camel_case(service_name) + method_name


def to_package_alias(import_path: str) -> str:
    """Derive a short Go import alias from the last two path segments."""

    if not import_path:
        return "pkg"
    parts = [part for part in import_path.split("/") if part]
    if not parts:
        return "pkg"
    if len(parts) >= 2:
        base = parts[-2].replace("-", "").replace("_", "").replace(".", "")
        version = parts[-1].replace("-", "").replace("_", "").replace(".", "")
        alias = (base + version).lower()
    else:
        alias = parts[-1].replace(".", "").replace("-", "").replace("_", "").lower()
    return sanitize_identifier(alias) if alias else "pkg"


def flatten_type_name(full_name: str, package_name: str) -> str:
    """Flatten a nested type name into ``Parent_Child`` relative to its package.

    ``package_name`` must be the owning package as declared by the defining
    file; the remainder of ``full_name`` is the nesting chain.
    """

    prefix = f"{package_name}." if package_name else ""
    local = full_name[len(prefix):] if prefix and full_name.startswith(prefix) else full_name
    return local.replace(".", "_")


def sanitize_identifier(name: str) -> str:
    if not name:
        return "identifier"
    sanitized = _NON_IDENTIFIER.sub("_", name)
    if not (sanitized[0].isalpha() or sanitized[0] == "_"):
        sanitized = "_" + sanitized[1:]
    return sanitized


__all__ = [
    "flatten_type_name",
    "lower_camel_from_snake",
    "sanitize_identifier",
    "to_base_name",
    "to_camel_case",
    "to_deserializer_name",
    "to_factory_name",
    "to_go_func_name",
    "to_js_namespace",
    "to_module_name",
    "to_package_alias",
    "to_pascal_case",
    "to_schema_registry_name",
    "to_snake_case",
]
