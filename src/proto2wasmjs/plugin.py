"""Protocol Buffers compiler plugin entry point for proto2wasmjs."""
from __future__ import annotations

import logging
import os
import sys
from typing import List, Optional

from google.protobuf.compiler import plugin_pb2

from .builders.shared import SchemaIndex
from .codegen import DefaultTemplateRenderer, GeneratedFile, ITemplateRenderer
from .config import GenerationConfig
from .descriptor_loader import DescriptorLoader
from .errors import GenerationError
from .filters import (
    EnumCollector,
    FilterCriteria,
    FilterStats,
    MessageCollector,
    MethodFilter,
    PackageFilter,
    ServiceFilter,
)
from .generators import BackendGenerator, PackageFiles, ScriptGenerator

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "PROTO2WASMJS_LOG_LEVEL"


def _collect_stats(
    packages: PackageFiles,
    criteria: FilterCriteria,
    package_stats: FilterStats,
) -> FilterStats:
    stats = FilterStats()
    stats.merge(package_stats)
    files = [proto_file for package_files in packages.values() for proto_file in package_files]

    service_filter = ServiceFilter()
    method_filter = MethodFilter()
    included, service_stats = service_filter.filter_services(files, criteria)
    stats.merge(service_stats)
    for service, _result in included:
        _, method_stats = method_filter.filter_methods(service, criteria)
        stats.merge(method_stats)

    stats.add_collection_stats(
        messages=len(MessageCollector().collect(files, criteria).items),
        enums=len(EnumCollector().collect(files, criteria).items),
        packages=0,
    )
    return stats


def generate_code(
    request: plugin_pb2.CodeGeneratorRequest,
    *,
    renderer: ITemplateRenderer | None = None,
    config: Optional[GenerationConfig] = None,
) -> plugin_pb2.CodeGeneratorResponse:
    """Run the proto2wasmjs pipeline and return a populated response message.

    Raises :class:`GenerationError` subclasses for invalid parameters,
    unresolved types or incomplete file plans; nothing is added to the
    response in that case.
    """

    loader = DescriptorLoader(request)
    loader.load()

    files_to_generate = loader.files_to_generate
    if not files_to_generate:
        files_to_generate = list(loader.files.keys())

    config = config or GenerationConfig.from_parameter_string(request.parameter)
    criteria = FilterCriteria.from_config(config)
    renderer = renderer or DefaultTemplateRenderer()
    schema = SchemaIndex(loader.files)

    packages, package_stats = PackageFilter().filter_packages(
        loader.files.values(), criteria, files_to_generate
    )
    all_files = [proto_file for package_files in packages.values() for proto_file in package_files]
    browser_services = [
        service for service, _result in ServiceFilter().browser_provided_services(all_files, criteria)
    ]

    generated: List[GeneratedFile] = []
    generated.extend(BackendGenerator(schema, renderer).generate(packages, browser_services, criteria, config))
    generated.extend(ScriptGenerator(schema, renderer).generate(packages, criteria, config))

    logger.info(_collect_stats(packages, criteria, package_stats).summary())

    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
    for item in generated:
        response_file = response.file.add()
        response_file.name = item.name
        response_file.content = item.content
    logger.info("Generated %d file(s) for %d package(s)", len(generated), len(packages))
    return response


def _configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    # stdout carries the protoc response.
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Execute the protoc plugin workflow."""

    _configure_logging()
    request_payload = sys.stdin.buffer.read()

    request = plugin_pb2.CodeGeneratorRequest()
    if request_payload:
        request.ParseFromString(request_payload)

    try:
        response = generate_code(request)
    except GenerationError as exc:
        logger.error("Generation failed: %s", exc)
        response = plugin_pb2.CodeGeneratorResponse()
        response.error = str(exc)
    sys.stdout.buffer.write(response.SerializeToString())


if __name__ == "__main__":  # pragma: no cover - convenience execution entry.
    main()
