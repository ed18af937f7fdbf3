"""Per-target generation control flow.

Each generator walks the filtered packages, asks its data builder for
template data, plans the output files, opens and validates the plan, and
finally renders.  Rendered files are only returned once every package of the
run succeeded, so a failure never leaves a partial result behind.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set

from . import model
from .builders.backend import BackendDataBuilder
from .builders.file_planning import FilePlan, FilePlanner, FileSpec, FileType, GeneratedFileSet
from .builders.script import ScriptDataBuilder
from .builders.shared import PackageInfo, SchemaIndex
from .codegen import DefaultTemplateRenderer, GeneratedFile, ITemplateRenderer, sanitize_generated_filename
from .config import GenerationConfig
from .errors import MissingRequiredFilesError
from .filters import FilterCriteria

logger = logging.getLogger(__name__)

PackageFiles = Mapping[str, Sequence[model.ProtoFile]]


class _FileOpener:
    """Hand out one handle (the sanitized output name) per physical file in a run.

    A second request for an already claimed name yields ``None``; for
    optional files such as the shared build script that simply skips them.
    """

    def __init__(self) -> None:
        self._claimed: Set[str] = set()

    def __call__(self, spec: FileSpec) -> Optional[str]:
        name = sanitize_generated_filename(spec.filename)
        if not name or name in self._claimed:
            logger.debug("Not opening %s (%s): already claimed", spec.name, spec.filename)
            return None
        self._claimed.add(name)
        return name


def _render_plan(
    file_set: GeneratedFileSet[str],
    renderer: ITemplateRenderer,
    data_for: Callable[[FileSpec], Any],
) -> List[GeneratedFile]:
    outputs: List[GeneratedFile] = []
    missing: List[str] = []
    for spec in file_set.plan.specs:
        handle = file_set.get_file(spec.name)
        if handle is None:
            continue
        data = data_for(spec)
        if data is None:
            if spec.required:
                missing.append(spec.name)
            else:
                logger.debug("No data for optional file %s; skipping", spec.filename)
            continue
        outputs.append(GeneratedFile(name=handle, content=renderer.render(spec, data)))
    if missing:
        raise MissingRequiredFilesError(file_set.plan.package_name, missing)
    return outputs


class BackendGenerator:
    """Generate the WASM binding files of every package."""

    def __init__(
        self,
        schema: SchemaIndex,
        renderer: Optional[ITemplateRenderer] = None,
        *,
        builder: Optional[BackendDataBuilder] = None,
        planner: Optional[FilePlanner] = None,
    ) -> None:
        self._renderer = renderer or DefaultTemplateRenderer()
        self._builder = builder or BackendDataBuilder(schema)
        self._planner = planner or FilePlanner(schema=schema)

    def generate(
        self,
        packages: PackageFiles,
        browser_services: Sequence[model.Service],
        criteria: FilterCriteria,
        config: GenerationConfig,
    ) -> List[GeneratedFile]:
        if not config.generate_wasm:
            return []

        opener = _FileOpener()
        outputs: List[GeneratedFile] = []
        for package_name, files in packages.items():
            package_info = PackageInfo.from_files(package_name, files)
            data = self._builder.build_template_data(package_info, browser_services, criteria, config)
            if data is None:
                continue

            plan = self._planner.plan_backend_files(data, config)
            logger.debug("Backend plan for %s: %s", package_name or "<root>", describe_plan(plan))
            file_set = GeneratedFileSet.from_plan(plan, opener)
            file_set.validate_file_set()
            outputs.extend(_render_plan(file_set, self._renderer, lambda _spec: data))
            logger.info(
                "Backend package %s: %d service(s), %d browser client(s)",
                package_name or "<root>",
                len(data.services),
                len(data.browser_clients),
            )
        return outputs


class ScriptGenerator:
    """Generate the browser script files of every package."""

    def __init__(
        self,
        schema: SchemaIndex,
        renderer: Optional[ITemplateRenderer] = None,
        *,
        builder: Optional[ScriptDataBuilder] = None,
        planner: Optional[FilePlanner] = None,
    ) -> None:
        self._renderer = renderer or DefaultTemplateRenderer()
        self._builder = builder or ScriptDataBuilder(schema)
        self._planner = planner or FilePlanner(schema=schema)

    def generate(
        self,
        packages: PackageFiles,
        criteria: FilterCriteria,
        config: GenerationConfig,
    ) -> List[GeneratedFile]:
        if not config.generate_typescript:
            return []

        opener = _FileOpener()
        outputs: List[GeneratedFile] = []
        for package_name, files in packages.items():
            package_info = PackageInfo.from_files(package_name, files)
            plan = self._planner.plan_script_files(package_info, criteria, config)
            if not plan.specs:
                logger.debug("Nothing to generate for script package %s", package_name or "<root>")
                continue

            logger.debug("Script plan for %s: %s", package_name or "<root>", describe_plan(plan))
            file_set = GeneratedFileSet.from_plan(plan, opener)
            file_set.validate_file_set()
            cache: Dict[str, Any] = {}
            outputs.extend(
                _render_plan(
                    file_set,
                    self._renderer,
                    lambda spec: self._data_for(spec, package_info, criteria, config, cache),
                )
            )
            logger.info("Script package %s: %d file(s)", package_name or "<root>", len(plan))
        return outputs

    def _data_for(
        self,
        spec: FileSpec,
        package_info: PackageInfo,
        criteria: FilterCriteria,
        config: GenerationConfig,
        cache: Dict[str, Any],
    ) -> Any:
        if spec.type is FileType.SERVICE_CLIENT:
            return self._builder.build_service_client_data(
                package_info, spec.metadata["service"], criteria, config
            )

        if spec.type in (FileType.INTERFACES, FileType.MODELS, FileType.SCHEMAS):
            directory = spec.metadata["directory"]
            key = f"types:{directory}"
            if key not in cache:
                cache[key] = self._builder.build_type_data(package_info, criteria, config, directory)
            return cache[key]

        if spec.type in (FileType.FACTORY, FileType.DESERIALIZER):
            if "factory" not in cache:
                cache["factory"] = self._builder.build_factory_data(package_info, criteria, config)
            return cache["factory"]

        if spec.type is FileType.PACKAGE_SCHEMAS:
            return self._builder.build_package_schema_data(package_info, config)

        logger.warning("Unknown script file type %s for %s", spec.type.value, spec.filename)
        return None


def describe_plan(plan: FilePlan) -> str:
    return ", ".join(f"{spec.name}={spec.filename}" for spec in plan.specs)


__all__ = ["BackendGenerator", "ScriptGenerator", "describe_plan"]
