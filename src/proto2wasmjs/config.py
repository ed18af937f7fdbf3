"""Configuration helpers for proto2wasmjs code generation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List

from .errors import ConfigError

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}

DEFAULT_RUNTIME_IMPORT_PATH = "github.com/panyam/protoc-gen-go-wasmjs/pkg/wasm"
DEFAULT_TS_EXPORT_PATH = "."
DEFAULT_WASM_EXPORT_PATH = "."


class JSStructure(str, Enum):
    """How generated script clients expose their services."""

    NAMESPACED = "namespaced"
    FLAT = "flat"
    SERVICE_BASED = "service_based"


def _parse_parameter_string(parameter: str | None) -> Dict[str, str]:
    if not parameter:
        return {}

    entries = parameter.replace(";", ",").split(",")
    result: Dict[str, str] = {}
    for entry in entries:
        piece = entry.strip()
        if not piece:
            continue
        if "=" in piece:
            key, value = piece.split("=", 1)
            result[key.strip().lower()] = value.strip()
        else:
            result[piece.lower()] = "true"
    return result


def _to_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return None


def _split_config_tokens(raw: str | None) -> List[str]:
    """Split list-valued parameters; ``|`` and ``+`` separate entries."""

    if not raw:
        return []
    normalized = raw
    for separator in ("|", "+"):
        normalized = normalized.replace(separator, ",")
    return [piece.strip() for piece in normalized.split(",") if piece.strip()]


def _flag(overrides: Dict[str, str], key: str, default: bool) -> bool:
    raw = overrides.get(key)
    if raw is None:
        return default
    value = _to_bool(raw)
    if value is None:
        raise ConfigError(f"Parameter '{key}' expects a boolean, got '{raw}'")
    return value


@dataclass(slots=True)
class GenerationConfig:
    """Runtime configuration shared read-only by every builder call."""

    ts_export_path: str = DEFAULT_TS_EXPORT_PATH
    wasm_export_path: str = DEFAULT_WASM_EXPORT_PATH
    js_structure: JSStructure = JSStructure.NAMESPACED
    js_namespace: str = ""
    module_name: str = ""
    runtime_import_path: str = DEFAULT_RUNTIME_IMPORT_PATH
    generate_wasm: bool = True
    generate_typescript: bool = True
    generate_build_script: bool = True
    generate_clients: bool = True
    generate_types: bool = True
    generate_factories: bool = True
    services: List[str] = field(default_factory=list)
    method_include: List[str] = field(default_factory=list)
    method_exclude: List[str] = field(default_factory=list)
    method_rename: List[str] = field(default_factory=list)

    @classmethod
    def from_parameter_string(cls, parameter: str | None) -> "GenerationConfig":
        overrides = _parse_parameter_string(parameter)

        structure_raw = overrides.get("js_structure") or JSStructure.NAMESPACED.value
        try:
            js_structure = JSStructure(structure_raw.lower())
        except ValueError:
            raise ConfigError(
                f"Invalid js_structure '{structure_raw}' "
                "(supported: namespaced, flat, service_based)"
            ) from None

        config = cls(
            ts_export_path=overrides.get("ts_export_path") or DEFAULT_TS_EXPORT_PATH,
            wasm_export_path=overrides.get("wasm_export_path") or DEFAULT_WASM_EXPORT_PATH,
            js_structure=js_structure,
            js_namespace=overrides.get("js_namespace", ""),
            module_name=overrides.get("module_name", ""),
            runtime_import_path=overrides.get("runtime_import_path") or DEFAULT_RUNTIME_IMPORT_PATH,
            generate_wasm=_flag(overrides, "generate_wasm", True),
            generate_typescript=_flag(overrides, "generate_typescript", True),
            generate_build_script=_flag(overrides, "generate_build_script", True),
            generate_clients=_flag(overrides, "generate_clients", True),
            generate_types=_flag(overrides, "generate_types", True),
            generate_factories=_flag(overrides, "generate_factories", True),
            services=_split_config_tokens(overrides.get("services")),
            method_include=_split_config_tokens(overrides.get("method_include")),
            method_exclude=_split_config_tokens(overrides.get("method_exclude")),
            method_rename=_split_config_tokens(overrides.get("method_rename")),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if not isinstance(self.js_structure, JSStructure):
            raise ConfigError(f"Invalid js_structure '{self.js_structure}'")
        if not self.generate_wasm and not self.generate_typescript:
            raise ConfigError("At least one of generate_wasm or generate_typescript must be enabled")

    def with_overrides(self, **changes: object) -> "GenerationConfig":
        return replace(self, **changes)

    def ts_output_path(self, relative: str) -> str:
        if self.ts_export_path in ("", "."):
            return relative
        return f"{self.ts_export_path.rstrip('/')}/{relative}"

    def wasm_output_path(self, relative: str) -> str:
        if self.wasm_export_path in ("", "."):
            return relative
        return f"{self.wasm_export_path.rstrip('/')}/{relative}"


__all__ = [
    "DEFAULT_RUNTIME_IMPORT_PATH",
    "GenerationConfig",
    "JSStructure",
]
