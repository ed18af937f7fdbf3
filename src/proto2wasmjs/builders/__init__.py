"""Template data builders for the backend and script targets."""

from __future__ import annotations

from .backend import BackendDataBuilder, BackendTemplateData
from .file_planning import FilePlan, FilePlanner, FileSpec, FileType, GeneratedFileSet
from .script import FactoryDispatchTable, ScriptDataBuilder, ScriptTemplateData
from .shared import BuildContext, MethodData, PackageInfo, SchemaIndex, ServiceData

__all__ = [
    "BackendDataBuilder",
    "BackendTemplateData",
    "BuildContext",
    "FactoryDispatchTable",
    "FilePlan",
    "FilePlanner",
    "FileSpec",
    "FileType",
    "GeneratedFileSet",
    "MethodData",
    "PackageInfo",
    "SchemaIndex",
    "ScriptDataBuilder",
    "ScriptTemplateData",
    "ServiceData",
]
