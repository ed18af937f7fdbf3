"""proto2wasmjs: protoc plugin producing Go WASM bindings and browser clients."""

from __future__ import annotations

from importlib import import_module

from . import model

# Public name -> submodule defining it; resolved on first attribute access so
# importing the package does not pull in protobuf.
_EXPORTS = {
    "BackendDataBuilder": ".builders",
    "DefaultTemplateRenderer": ".codegen",
    "DescriptorLoader": ".descriptor_loader",
    "FilePlanner": ".builders",
    "GeneratedFile": ".codegen",
    "GenerationConfig": ".config",
    "GenerationError": ".errors",
    "ITemplateRenderer": ".codegen",
    "OptionContext": ".descriptor_loader",
    "OptionValidator": ".descriptor_loader",
    "ScriptDataBuilder": ".builders",
    "generate_code": ".plugin",
}

__all__ = sorted(_EXPORTS) + ["model"]


def __getattr__(name: str):
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    return getattr(import_module(module_name, __name__), name)
