from __future__ import annotations

import io
import json
import logging
import os
import subprocess
import sys
import types
from pathlib import Path

import pytest

pytest.importorskip("google.protobuf")

from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from proto2wasmjs import plugin
from proto2wasmjs.builders.file_planning import FileSpec, FileType
from proto2wasmjs.codegen import DefaultTemplateRenderer, GeneratedFile, sanitize_generated_filename
from proto2wasmjs.config import GenerationConfig
from proto2wasmjs.errors import ConfigError

FDP = descriptor_pb2.FieldDescriptorProto


def _add_message(file_proto, name: str, *fields) -> None:
    message = file_proto.message_type.add()
    message.name = name
    for number, (field_name, field_type) in enumerate(fields, start=1):
        field = message.field.add()
        field.name = field_name
        field.number = number
        field.label = FDP.LABEL_OPTIONAL
        field.type = field_type


def _build_request(parameter: str = "") -> plugin_pb2.CodeGeneratorRequest:
    cart = descriptor_pb2.FileDescriptorProto()
    cart.name = "shop/v1/cart.proto"
    cart.package = "shop.v1"
    cart.syntax = "proto3"
    cart.options.go_package = "github.com/acme/shop/gen/shop/v1"
    _add_message(cart, "AddItemRequest", ("sku", FDP.TYPE_STRING), ("quantity", FDP.TYPE_INT32))
    _add_message(cart, "AddItemResponse", ("ok", FDP.TYPE_BOOL))
    service = cart.service.add()
    service.name = "CartService"
    method = service.method.add()
    method.name = "AddItem"
    method.input_type = ".shop.v1.AddItemRequest"
    method.output_type = ".shop.v1.AddItemResponse"

    library = descriptor_pb2.FileDescriptorProto()
    library.name = "library/v1/library.proto"
    library.package = "library.v1"
    library.syntax = "proto3"
    library.options.go_package = "github.com/acme/gen/library/v1"
    _add_message(library, "Book", ("title", FDP.TYPE_STRING), ("cover", FDP.TYPE_BYTES))

    request = plugin_pb2.CodeGeneratorRequest()
    request.proto_file.extend([cart, library])
    request.file_to_generate.extend([cart.name, library.name])
    if parameter:
        request.parameter = parameter
    return request


def _files(response: plugin_pb2.CodeGeneratorResponse):
    return {item.name: item.content for item in response.file}


def test_generate_code_plans_both_targets() -> None:
    response = plugin.generate_code(_build_request())

    assert response.supported_features == plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
    assert [item.name for item in response.file] == [
        "shop/v1/shop_v1.wasm.go",
        "shop/v1/main.go.example",
        "build.sh",
        "shop/v1/cartServiceClient.ts",
        "shop/v1/interfaces.ts",
        "shop/v1/models.ts",
        "shop/v1/schemas.ts",
        "shop/v1/factory.ts",
        "shop/v1/deserializer.ts",
        "library/v1/interfaces.ts",
        "library/v1/models.ts",
        "library/v1/schemas.ts",
        "library/v1/factory.ts",
        "library/v1/deserializer.ts",
    ]


def test_default_renderer_emits_template_data_as_json() -> None:
    files = _files(plugin.generate_code(_build_request()))

    wasm = json.loads(files["shop/v1/shop_v1.wasm.go"])
    assert wasm["type"] == "wasm"
    [service] = wasm["data"]["services"]
    assert service["go_type"] == "shopv1.CartServiceServer"
    assert service["methods"][0]["js_name"] == "addItem"

    client = json.loads(files["shop/v1/cartServiceClient.ts"])
    assert client["data"]["import_groups"] == [
        {"import_path": "./interfaces", "types": ["AddItemRequest", "AddItemResponse"]}
    ]

    interfaces = json.loads(files["library/v1/interfaces.ts"])
    [book] = interfaces["data"]["messages"]
    assert [field["ts_type"] for field in book["fields"]] == ["string", "Uint8Array"]
    assert interfaces["data"]["schema_registry_name"] == "library_v1SchemaRegistry"

    factory = json.loads(files["library/v1/factory.ts"])
    assert factory["data"]["dispatch"] == [
        {"full_name": "library.v1.Book", "ts_name": "Book", "method_name": "newBook"}
    ]


def test_parameters_switch_targets_and_filters() -> None:
    response = plugin.generate_code(
        _build_request("generate_wasm=false,generate_factories=false,ts_export_path=web")
    )

    names = [item.name for item in response.file]
    assert not any(name.endswith(".go") for name in names)
    assert "web/shop/v1/cartServiceClient.ts" in names
    assert "web/shop/v1/factory.ts" not in names


def test_method_exclude_parameter_reaches_backend() -> None:
    files = _files(plugin.generate_code(_build_request("method_exclude=AddItem")))

    # The only service lost its only method, so no bindings are written.
    assert "shop/v1/shop_v1.wasm.go" not in files
    client = json.loads(files["shop/v1/cartServiceClient.ts"])
    assert client["data"]["services"][0]["methods"] == []


def test_invalid_parameter_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="js_structure"):
        plugin.generate_code(_build_request("js_structure=tree"))


def test_explicit_config_overrides_request_parameter() -> None:
    config = GenerationConfig(generate_typescript=False)

    response = plugin.generate_code(_build_request("js_structure=tree"), config=config)

    assert [item.name for item in response.file] == [
        "shop/v1/shop_v1.wasm.go",
        "shop/v1/main.go.example",
        "build.sh",
    ]


class _RecordingRenderer:
    def __init__(self) -> None:
        self.calls: list[tuple[str, FileType]] = []

    def render(self, spec: FileSpec, data: object) -> str:
        self.calls.append((spec.name, spec.type))
        return f"// {spec.type.value}\n"


def test_custom_renderer_receives_every_planned_file() -> None:
    renderer = _RecordingRenderer()

    response = plugin.generate_code(_build_request(), renderer=renderer)

    assert len(renderer.calls) == len(response.file)
    assert ("wasm", FileType.WASM) in renderer.calls
    assert ("client_CartService", FileType.SERVICE_CLIENT) in renderer.calls
    assert _files(response)["build.sh"] == "// script\n"


def test_summary_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="proto2wasmjs"):
        plugin.generate_code(_build_request())

    assert "Filtering summary: 1/1 services, 1/1 methods" in caplog.text
    assert "Generated 14 file(s) for 2 package(s)" in caplog.text


def test_main_reports_generation_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = _build_request("js_structure=tree").SerializeToString()
    stdout = io.BytesIO()
    monkeypatch.setattr(plugin.sys, "stdin", types.SimpleNamespace(buffer=io.BytesIO(payload)))
    monkeypatch.setattr(plugin.sys, "stdout", types.SimpleNamespace(buffer=stdout))

    plugin.main()

    response = plugin_pb2.CodeGeneratorResponse()
    response.ParseFromString(stdout.getvalue())
    assert "js_structure" in response.error
    assert not response.file


def test_sanitize_generated_filename() -> None:
    assert sanitize_generated_filename("../shop/v1/a b.ts") == "shop/v1/a_b.ts"
    assert sanitize_generated_filename("./web//shop/v1/interfaces.ts") == "web/shop/v1/interfaces.ts"
    assert sanitize_generated_filename("dir\\file.ts") == "dir/file.ts"
    assert sanitize_generated_filename("") == ""


def test_generated_file_write(tmp_path) -> None:
    target = GeneratedFile(name="shop/v1/factory.ts", content="export {};\n").write(tmp_path)

    assert target == tmp_path / "shop" / "v1" / "factory.ts"
    assert target.read_text(encoding="utf-8") == "export {};\n"


def test_default_renderer_serialises_enums_and_bytes() -> None:
    spec = FileSpec(name="models:shop/v1", filename="shop/v1/models.ts", type=FileType.MODELS)

    rendered = DefaultTemplateRenderer(indent=None).render(spec, {"kind": FileType.MODELS, "raw": b"\x01"})

    assert json.loads(rendered) == {
        "file": "models:shop/v1",
        "type": "models",
        "data": {"kind": "models", "raw": "AQ=="},
    }


def test_plugin_imports_in_a_fresh_interpreter() -> None:
    source_root = Path(plugin.__file__).resolve().parents[1]
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(source_root), env.get("PYTHONPATH", "")]))

    result = subprocess.run(
        [sys.executable, "-c", "import proto2wasmjs.plugin; from proto2wasmjs import options; options.is_factory_file"],
        capture_output=True,
        text=True,
        env=env,
        check=False,
    )

    assert result.returncode == 0, result.stderr


def _shared_directory_request() -> plugin_pb2.CodeGeneratorRequest:
    foo = descriptor_pb2.FileDescriptorProto()
    foo.name = "api/foo.proto"
    foo.package = "foo.v1"
    foo.syntax = "proto3"
    _add_message(foo, "Foo", ("name", FDP.TYPE_STRING))

    bar = descriptor_pb2.FileDescriptorProto()
    bar.name = "api/bar.proto"
    bar.package = "bar.v1"
    bar.syntax = "proto3"
    bar.dependency.append(foo.name)
    message = bar.message_type.add()
    message.name = "Bar"
    field = message.field.add()
    field.name = "foo"
    field.number = 1
    field.label = FDP.LABEL_OPTIONAL
    field.type = FDP.TYPE_MESSAGE
    field.type_name = ".foo.v1.Foo"

    request = plugin_pb2.CodeGeneratorRequest()
    request.proto_file.extend([foo, bar])
    request.file_to_generate.extend([foo.name, bar.name])
    request.parameter = "generate_wasm=false"
    return request


def test_packages_sharing_a_source_directory_get_their_own_type_files() -> None:
    files = _files(plugin.generate_code(_shared_directory_request()))

    assert sorted(files) == [
        "bar/v1/deserializer.ts",
        "bar/v1/factory.ts",
        "bar/v1/interfaces.ts",
        "bar/v1/models.ts",
        "bar/v1/schemas.ts",
        "foo/v1/deserializer.ts",
        "foo/v1/factory.ts",
        "foo/v1/interfaces.ts",
        "foo/v1/models.ts",
        "foo/v1/schemas.ts",
    ]
    bar = json.loads(files["bar/v1/interfaces.ts"])
    assert bar["data"]["external_imports"] == [{"import_path": "../../foo/v1/interfaces", "types": ["Foo"]}]
