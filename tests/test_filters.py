from __future__ import annotations

from proto2wasmjs import model
from proto2wasmjs.filters import (
    EnumCollector,
    FilterCriteria,
    FilterStats,
    MessageCollector,
    MethodFilter,
    PackageFilter,
    ServiceFilter,
)


def _method(name: str, **kwargs: object) -> model.Method:
    return model.Method(
        name=name,
        full_name=f"shop.v1.CartService.{name}",
        input_type="shop.v1.Request",
        output_type="shop.v1.Response",
        **kwargs,
    )


def _service(name: str = "CartService", methods=(), options=None) -> model.Service:
    return model.Service(
        name=name,
        full_name=f"shop.v1.{name}",
        package="shop.v1",
        file_name="shop/v1/cart.proto",
        methods=list(methods),
        options=dict(options or {}),
    )


def _file(name: str, package: str, **kwargs: object) -> model.ProtoFile:
    return model.ProtoFile(name=name, package=package, **kwargs)


def test_service_filter_precedence() -> None:
    service_filter = ServiceFilter()
    excluded = _service(options={"[wasmjs.v1.wasm_service_exclude]": True})
    listed = _service("CartService")
    unlisted = _service("OrderService")
    criteria = FilterCriteria.parse(services=["CartService"])

    assert service_filter.should_include(excluded, criteria).include is False
    assert service_filter.should_include(listed, criteria).include is True
    assert service_filter.should_include(unlisted, criteria).include is False
    assert service_filter.should_include(unlisted, FilterCriteria()).include is True


def test_service_filter_reports_annotations() -> None:
    service = _service(
        options={
            "[wasmjs.v1.browser_provided]": True,
            "[wasmjs.v1.wasm_service_name]": "cart",
        }
    )

    result = ServiceFilter().should_include(service, FilterCriteria())

    assert result.include is True
    assert result.is_browser_provided is True
    assert result.custom_name == "cart"


def test_method_filter_precedence() -> None:
    method_filter = MethodFilter()
    criteria = FilterCriteria.parse(method_include=["Add*", "Internal*"], method_exclude=["Internal*"])

    annotated = _method("AddItem", options={"[wasmjs.v1.wasm_method_exclude]": True})
    streaming = _method("AddMany", client_streaming=True)
    excluded = _method("InternalDebug")
    not_included = _method("GetCart")
    included = _method("AddItem")

    assert method_filter.should_include(annotated, criteria).include is False
    assert method_filter.should_include(streaming, criteria).include is False
    assert method_filter.should_include(excluded, criteria).include is False
    assert method_filter.should_include(not_included, criteria).include is False
    assert method_filter.should_include(included, criteria).include is True


def test_method_filter_hints_and_js_name() -> None:
    method_filter = MethodFilter()
    criteria = FilterCriteria.parse(method_rename=["GetCart:fetchCart"])
    custom = _method(
        "AddItem",
        options={
            "[wasmjs.v1.wasm_method_name]": "put",
            "[wasmjs.v1.async_method]": {"is_async": True},
        },
        server_streaming=True,
    )

    result = method_filter.should_include(custom, criteria)

    assert result.is_async is True
    assert result.is_server_streaming is True
    assert method_filter.js_name(custom, criteria, result) == "put"
    assert method_filter.js_name(_method("GetCart"), criteria) == "fetchCart"
    assert method_filter.js_name(_method("RemoveItem"), criteria) == "removeItem"


def test_filter_methods_keeps_declaration_order_and_counts() -> None:
    service = _service(methods=[_method("B"), _method("Internal"), _method("A")])
    criteria = FilterCriteria.parse(method_exclude=["Internal"])

    included, stats = MethodFilter().filter_methods(service, criteria)

    assert [method.name for method, _ in included] == ["B", "A"]
    assert (stats.methods_total, stats.methods_included, stats.methods_excluded) == (3, 2, 1)


def test_collectors_flatten_nested_types() -> None:
    inner_enum = model.Enum(name="Kind", full_name="shop.v1.Item.Kind", package="shop.v1", is_nested=True)
    inner = model.Message(name="Price", full_name="shop.v1.Item.Price", package="shop.v1", is_nested=True)
    item = model.Message(
        name="Item",
        full_name="shop.v1.Item",
        package="shop.v1",
        nested_messages=[inner],
        nested_enums=[inner_enum],
    )
    status = model.Enum(name="Status", full_name="shop.v1.Status", package="shop.v1")
    proto_file = _file("shop/v1/item.proto", "shop.v1", messages=[item], enums=[status])

    messages = MessageCollector().collect([proto_file], FilterCriteria())
    enums = EnumCollector().collect([proto_file], FilterCriteria())
    top_level = MessageCollector().collect([proto_file], FilterCriteria(exclude_nested_messages=True))

    assert [message.name for message in messages.items] == ["Item", "Price"]
    assert [enum.name for enum in enums.items] == ["Status", "Kind"]
    assert [message.name for message in top_level.items] == ["Item"]
    assert messages.files_scanned == 1


def test_package_filter_groups_and_drops_annotation_packages() -> None:
    message = model.Message(name="Item", full_name="shop.v1.Item", package="shop.v1")
    files = [
        _file("wasmjs/v1/annotations.proto", "wasmjs.v1"),
        _file("shop/v1/item.proto", "shop.v1", messages=[message]),
        _file("shop/v1/empty.proto", "shop.v1"),
        _file("empty/v1/empty.proto", "empty.v1"),
        _file("google/protobuf/timestamp.proto", "google.protobuf", messages=[message]),
    ]

    packages, stats = PackageFilter().filter_packages(files, FilterCriteria())

    assert list(packages) == ["shop.v1"]
    assert [proto_file.name for proto_file in packages["shop.v1"]] == [
        "shop/v1/item.proto",
        "shop/v1/empty.proto",
    ]
    assert stats.packages_total == 4


def test_package_filter_honours_files_to_generate() -> None:
    message = model.Message(name="Item", full_name="shop.v1.Item", package="shop.v1")
    files = [
        _file("shop/v1/item.proto", "shop.v1", messages=[message]),
        _file("other/v1/item.proto", "other.v1", messages=[message]),
    ]

    packages, _ = PackageFilter().filter_packages(files, FilterCriteria(), ["other/v1/item.proto"])

    assert list(packages) == ["other.v1"]


def test_filter_stats_merge_and_summary() -> None:
    first = FilterStats(services_total=2, services_included=1, services_excluded=1)
    second = FilterStats(services_total=1, services_included=1, messages_total=3)

    first.merge(second)

    assert first.services_total == 3
    assert first.summary() == (
        "Filtering summary: 2/3 services, 0/0 methods, 3 messages, 0 enums from 0 packages"
    )
