from __future__ import annotations

import pytest

pytest.importorskip("google.protobuf")

from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from proto2wasmjs import model, options
from proto2wasmjs.descriptor_loader import DescriptorLoader, OptionContext
from proto2wasmjs.errors import TypeResolutionError

FDP = descriptor_pb2.FieldDescriptorProto


def _add_field(message, name: str, number: int, field_type: int, type_name: str = "", repeated: bool = False):
    field = message.field.add()
    field.name = name
    field.number = number
    field.label = FDP.LABEL_REPEATED if repeated else FDP.LABEL_OPTIONAL
    field.type = field_type
    if type_name:
        field.type_name = type_name
    return field


def _build_request() -> plugin_pb2.CodeGeneratorRequest:
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "library/v1/library.proto"
    file_proto.package = "library.v1"
    file_proto.syntax = "proto3"
    file_proto.options.go_package = "github.com/acme/gen/library/v1;libraryv1"

    genre_enum = file_proto.enum_type.add()
    genre_enum.name = "Genre"
    genre_enum.value.add(name="GENRE_UNSPECIFIED", number=0)
    genre_enum.value.add(name="GENRE_FICTION", number=1)

    book = file_proto.message_type.add()
    book.name = "Book"

    author = book.nested_type.add()
    author.name = "Author"
    _add_field(author, "name", 1, FDP.TYPE_STRING)

    tags_entry = book.nested_type.add()
    tags_entry.name = "TagsEntry"
    tags_entry.options.map_entry = True
    _add_field(tags_entry, "key", 1, FDP.TYPE_STRING)
    _add_field(tags_entry, "value", 2, FDP.TYPE_MESSAGE, ".library.v1.Book.Author")

    format_enum = book.enum_type.add()
    format_enum.name = "Format"
    format_enum.value.add(name="FORMAT_UNSPECIFIED", number=0)

    book.oneof_decl.add().name = "_subtitle"

    _add_field(book, "title", 1, FDP.TYPE_STRING)
    _add_field(book, "tags", 2, FDP.TYPE_MESSAGE, ".library.v1.Book.TagsEntry", repeated=True)
    _add_field(book, "genre", 3, FDP.TYPE_ENUM, ".library.v1.Genre")
    subtitle = _add_field(book, "subtitle", 4, FDP.TYPE_STRING)
    subtitle.oneof_index = 0
    subtitle.proto3_optional = True
    _add_field(book, "authors", 5, FDP.TYPE_MESSAGE, ".library.v1.Book.Author", repeated=True)

    request_message = file_proto.message_type.add()
    request_message.name = "GetBookRequest"
    _add_field(request_message, "id", 1, FDP.TYPE_STRING)

    service = file_proto.service.add()
    service.name = "LibraryService"
    method = service.method.add()
    method.name = "GetBook"
    method.input_type = ".library.v1.GetBookRequest"
    method.output_type = ".library.v1.Book"

    for path, comment in (
        ([4, 0], " A book on the shelf.\n"),
        ([4, 0, 2, 0], " Display title.\n"),
        ([5, 0], " Broad category.\n"),
        ([6, 0], " Looks books up.\n"),
        ([6, 0, 2, 0], " Fetch one book.\n"),
    ):
        location = file_proto.source_code_info.location.add()
        location.path.extend(path)
        location.leading_comments = comment

    request = plugin_pb2.CodeGeneratorRequest()
    request.file_to_generate.append(file_proto.name)
    request.proto_file.append(file_proto)
    return request


def test_descriptor_loader_builds_schema_graph() -> None:
    loader = DescriptorLoader(_build_request())
    files = loader.load()

    proto_file = files["library/v1/library.proto"]
    assert proto_file.package == "library.v1"
    assert proto_file.go_import_path == "github.com/acme/gen/library/v1"
    assert proto_file.go_package_name == "libraryv1"
    assert proto_file.directory == "library/v1"

    book, request_message = proto_file.messages
    assert book.full_name == "library.v1.Book"
    assert book.package == "library.v1"
    assert book.file_name == "library/v1/library.proto"
    assert book.is_nested is False

    # Map entries are folded into their field rather than listed as messages.
    assert [nested.name for nested in book.nested_messages] == ["Author"]
    author = book.nested_messages[0]
    assert author.is_nested is True
    assert author.package == "library.v1"

    title, tags, genre, subtitle, authors = book.fields
    assert tags.kind is model.FieldKind.MAP
    assert tags.is_repeated is False
    assert tags.map_entry is not None
    assert tags.map_entry.key_scalar == "string"
    assert tags.map_entry.value_resolved_type is author

    assert genre.kind is model.FieldKind.ENUM
    assert genre.resolved_type is proto_file.enums[0]

    assert subtitle.proto3_optional is True
    assert book.oneofs[0].is_synthetic is True

    assert authors.is_repeated is True
    assert authors.resolved_type is author

    assert book.nested_enums[0].full_name == "library.v1.Book.Format"
    assert book.nested_enums[0].is_nested is True
    assert loader.find_type("library.v1.Book.Author") is author
    assert request_message.name == "GetBookRequest"


def test_descriptor_loader_resolves_services_and_comments() -> None:
    loader = DescriptorLoader(_build_request())
    proto_file = loader.get_file("library/v1/library.proto")

    service = proto_file.services[0]
    assert service.full_name == "library.v1.LibraryService"
    assert service.package == "library.v1"
    assert service.file_name == "library/v1/library.proto"
    assert service.comment == "Looks books up."

    method = service.methods[0]
    assert method.full_name == "library.v1.LibraryService.GetBook"
    assert method.input_resolved is proto_file.messages[1]
    assert method.output_resolved is proto_file.messages[0]
    assert method.comment == "Fetch one book."

    book = proto_file.messages[0]
    assert book.comment == "A book on the shelf."
    assert book.fields[0].comment == "Display title."
    assert proto_file.enums[0].comment == "Broad category."


def test_unresolved_method_type_raises() -> None:
    request = _build_request()
    request.proto_file[0].service[0].method[0].output_type = ".library.v1.Missing"

    with pytest.raises(TypeResolutionError) as excinfo:
        DescriptorLoader(request).load()

    assert excinfo.value.owner == "library.v1.LibraryService.GetBook"
    assert excinfo.value.type_name == "library.v1.Missing"
    assert isinstance(excinfo.value, KeyError)


def test_unresolved_field_type_raises() -> None:
    request = _build_request()
    request.proto_file[0].message_type[1].field[0].type = FDP.TYPE_MESSAGE
    request.proto_file[0].message_type[1].field[0].type_name = ".library.v1.Nowhere"

    with pytest.raises(TypeResolutionError, match="library.v1.GetBookRequest.id"):
        DescriptorLoader(request).load()


def test_missing_dependency_raises() -> None:
    request = _build_request()
    request.proto_file[0].dependency.append("library/v1/common.proto")

    with pytest.raises(TypeResolutionError, match="library/v1/common.proto"):
        DescriptorLoader(request).load()


def test_option_validator_receives_contexts() -> None:
    request = _build_request()
    request.proto_file[0].message_type[0].options.deprecated = True
    seen: list[tuple[str, str | None, str | None]] = []

    def validator(context: OptionContext, options: dict[str, object]) -> None:
        if options:
            seen.append((context.element_type, context.full_name, context.field_name))

    DescriptorLoader(request, option_validator=validator).load()

    assert ("file", "library.v1", None) in seen
    assert ("message", "library.v1.Book", None) in seen


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def _annotations_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "wasmjs/v1/annotations.proto"
    file_proto.package = "wasmjs.v1"
    file_proto.syntax = "proto3"
    file_proto.dependency.append("google/protobuf/descriptor.proto")
    for name, number, field_type, extendee in (
        ("browser_provided", 50001, FDP.TYPE_BOOL, ".google.protobuf.ServiceOptions"),
        ("wasm_service_name", 50002, FDP.TYPE_STRING, ".google.protobuf.ServiceOptions"),
        ("wasm_method_exclude", 50011, FDP.TYPE_BOOL, ".google.protobuf.MethodOptions"),
    ):
        extension = file_proto.extension.add()
        extension.name = name
        extension.number = number
        extension.label = FDP.LABEL_OPTIONAL
        extension.type = field_type
        extension.extendee = extendee
    return file_proto


def test_custom_options_are_read_through_request_extensions() -> None:
    descriptor_file = descriptor_pb2.FileDescriptorProto()
    descriptor_pb2.DESCRIPTOR.CopyToProto(descriptor_file)

    request = _build_request()
    library = request.proto_file[0]
    library.dependency.append("wasmjs/v1/annotations.proto")

    service_name = b"library"
    library.service[0].options.MergeFromString(
        _varint((50001 << 3) | 0)
        + _varint(1)
        + _varint((50002 << 3) | 2)
        + _varint(len(service_name))
        + service_name
    )
    library.service[0].method[0].options.MergeFromString(_varint((50011 << 3) | 0) + _varint(1))

    request.proto_file.insert(0, _annotations_file())
    request.proto_file.insert(0, descriptor_file)

    proto_file = DescriptorLoader(request).get_file("library/v1/library.proto")
    service = proto_file.services[0]

    assert service.options["[wasmjs.v1.browser_provided]"] is True
    assert options.is_browser_provided(service) is True
    assert options.custom_service_name(service) == "library"
    assert options.is_method_excluded(service.methods[0]) is True


def test_from_file_descriptor_set() -> None:
    request = _build_request()
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    descriptor_set.file.extend(request.proto_file)

    loader = DescriptorLoader.from_file_descriptor_set(descriptor_set, parameter="module_name=lib")

    assert loader.files_to_generate == ["library/v1/library.proto"]
    assert loader.parameter == "module_name=lib"
    assert "library/v1/library.proto" in loader.files
