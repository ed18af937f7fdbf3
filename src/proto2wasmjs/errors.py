"""Exceptions raised while building generation data."""

from __future__ import annotations

from typing import Iterable, List


class GenerationError(Exception):
    """Base class for failures that abort a generation run."""


class ConfigError(GenerationError, ValueError):
    """Raised for invalid plugin parameters."""


class MissingRequiredFilesError(GenerationError):
    """A file plan was bound without one or more of its required logical files."""

    def __init__(self, package_name: str, missing: Iterable[str]) -> None:
        self.package_name = package_name
        self.missing: List[str] = sorted(missing)
        super().__init__(
            f"Package '{package_name}' is missing required files: {', '.join(self.missing)}"
        )


class TypeResolutionError(GenerationError, KeyError):
    """A field or method references a type whose definition cannot be located."""

    def __init__(self, owner: str, type_name: str, reason: str = "type is not defined") -> None:
        self.owner = owner
        self.type_name = type_name
        super().__init__(f"Cannot resolve type '{type_name}' referenced by '{owner}': {reason}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


__all__ = [
    "ConfigError",
    "GenerationError",
    "MissingRequiredFilesError",
    "TypeResolutionError",
]
