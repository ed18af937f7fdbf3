"""Readers for the ``wasmjs.v1`` custom options.

Options arrive normalized through :func:`google.protobuf.json_format.MessageToDict`,
where extensions are keyed by their bracketed full name.
"""

from __future__ import annotations

from typing import Any, Mapping

from . import model

ANNOTATION_PACKAGE = "wasmjs.v1"

BROWSER_PROVIDED = f"[{ANNOTATION_PACKAGE}.browser_provided]"
SERVICE_NAME = f"[{ANNOTATION_PACKAGE}.wasm_service_name]"
SERVICE_EXCLUDE = f"[{ANNOTATION_PACKAGE}.wasm_service_exclude]"
METHOD_NAME = f"[{ANNOTATION_PACKAGE}.wasm_method_name]"
METHOD_EXCLUDE = f"[{ANNOTATION_PACKAGE}.wasm_method_exclude]"
ASYNC_METHOD = f"[{ANNOTATION_PACKAGE}.async_method]"
TS_FACTORY = f"[{ANNOTATION_PACKAGE}.ts_factory]"


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return False


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _option(options: Mapping[str, Any], key: str) -> Any:
    if key in options:
        return options[key]
    # Tolerate unbracketed keys in hand-built option dictionaries.
    return options.get(key[1:-1])


def is_browser_provided(service: model.Service) -> bool:
    return _as_bool(_option(service.options, BROWSER_PROVIDED))


def is_service_excluded(service: model.Service) -> bool:
    return _as_bool(_option(service.options, SERVICE_EXCLUDE))


def custom_service_name(service: model.Service) -> str:
    return _as_str(_option(service.options, SERVICE_NAME))


def is_method_excluded(method: model.Method) -> bool:
    return _as_bool(_option(method.options, METHOD_EXCLUDE))


def custom_method_name(method: model.Method) -> str:
    return _as_str(_option(method.options, METHOD_NAME))


def is_async_method(method: model.Method) -> bool:
    raw = _option(method.options, ASYNC_METHOD)
    if isinstance(raw, Mapping):
        return _as_bool(raw.get("is_async", raw.get("isAsync")))
    return _as_bool(raw)


def is_factory_file(proto_file: model.ProtoFile) -> bool:
    return _as_bool(_option(proto_file.options, TS_FACTORY))


__all__ = [
    "ANNOTATION_PACKAGE",
    "custom_method_name",
    "custom_service_name",
    "is_async_method",
    "is_browser_provided",
    "is_factory_file",
    "is_method_excluded",
    "is_service_excluded",
]
