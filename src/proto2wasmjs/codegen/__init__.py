"""Renderer interface and the default template-data renderer."""

from __future__ import annotations

import base64
import dataclasses
import json
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from ..builders.file_planning import FileSpec
from ..builders.script import FactoryDispatchTable

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.\-/]")


def sanitize_generated_filename(name: str) -> str:
    """Normalise ``name`` into a relative POSIX path safe to hand back to protoc."""

    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name.replace("\\", "/"))
    normalized = posixpath.normpath(cleaned) if cleaned else ""
    parts = [part for part in normalized.split("/") if part not in ("", ".", "..")]
    return "/".join(parts)


@dataclass(slots=True)
class GeneratedFile:
    """A rendered output file."""

    name: str
    content: str

    def write(self, root: Path) -> Path:
        target = Path(root) / self.name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.content, encoding="utf-8")
        return target


class ITemplateRenderer(Protocol):
    """Turn one planned file and its template data into text."""

    def render(self, spec: FileSpec, data: Any) -> str:
        ...


def to_jsonable(value: Any) -> Any:
    """Convert template data into plain JSON-compatible values."""

    if isinstance(value, Enum):
        return value.value
    if isinstance(value, FactoryDispatchTable):
        return [
            {
                "full_name": method.full_name,
                "ts_name": method.ts_name,
                "method_name": method.method_name,
            }
            for method in value.methods()
        ]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result = {}
        for item in dataclasses.fields(value):
            field_value = getattr(value, item.name)
            if callable(field_value) and not dataclasses.is_dataclass(field_value):
                continue
            result[item.name] = to_jsonable(field_value)
        return result
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [to_jsonable(item) for item in value]
        return sorted(items) if isinstance(value, (set, frozenset)) else items
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    # Schema objects carried in plan metadata are referenced by name.
    full_name = getattr(value, "full_name", None)
    if isinstance(full_name, str):
        return full_name
    return repr(value)


class DefaultTemplateRenderer:
    """Render template data as an indented JSON document.

    Real templates are supplied by callers through :class:`ITemplateRenderer`;
    the default output lets every planned file be inspected and diffed.
    """

    def __init__(self, *, indent: int = 2) -> None:
        self._indent = indent

    def render(self, spec: FileSpec, data: Any) -> str:
        document = {
            "file": spec.name,
            "type": spec.type.value,
            "data": to_jsonable(data),
        }
        return json.dumps(document, indent=self._indent, sort_keys=False) + "\n"


__all__ = [
    "DefaultTemplateRenderer",
    "GeneratedFile",
    "ITemplateRenderer",
    "sanitize_generated_filename",
    "to_jsonable",
]
