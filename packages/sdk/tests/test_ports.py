"""Tests for taverna_server_sdk.ports — port values and index addressing."""

from __future__ import annotations

from typing import Any

import pytest

from taverna_server_sdk.exceptions import IndexOutOfRangeError, MalformedCoordinateError
from taverna_server_sdk.ports import (
    OutputPort,
    PortValue,
    iter_indices,
    leaves,
    parse_coordinate,
    resolve,
    total_size,
)
from taverna_server_sdk.schemas import NodeDescriptor
from taverna_server_sdk.types import PortValueKind


def _value(size: int, href: str = "http://x/v") -> dict[str, Any]:
    return {"value": {"href": href, "contentType": "text/plain", "contentByteLength": size}}


def _port(name: str, depth: int, tree: dict[str, Any]) -> OutputPort:
    return OutputPort(name, depth, NodeDescriptor.model_validate(tree))


def _list_port() -> OutputPort:
    """Depth 1 port with three values of sizes 1, 2 and 3."""
    return _port("list", 1, {"list": [_value(1, "a"), _value(2, "b"), _value(3, "c")]})


def _nested_port() -> OutputPort:
    """Depth 2 port: [[1, 2], [], [err, 4]]."""
    return _port(
        "nested",
        2,
        {
            "list": [
                {"list": [_value(1, "a"), _value(2, "b")]},
                {"list": []},
                {"list": [{"error": {"message": "failed"}}, _value(4, "d")]},
            ]
        },
    )


class TestPortValue:
    def test_exactly_one_payload(self) -> None:
        with pytest.raises(ValueError):
            PortValue()
        with pytest.raises(ValueError):
            PortValue(data=b"x", error="boom")

    def test_inline(self) -> None:
        value = PortValue.inline(b"abc", "text/plain")
        assert value.kind is PortValueKind.DATA
        assert value.size == 3

    def test_failed(self) -> None:
        value = PortValue.failed("boom")
        assert value.is_error
        assert value.kind is PortValueKind.ERROR
        assert value.size == 0

    @pytest.mark.parametrize(
        ("content_type", "expected"),
        [
            ("text/plain", True),
            ("text/csv; charset=utf-8", True),
            ("application/json", True),
            ("application/rdf+xml", True),
            ("application/octet-stream", False),
            ("image/png", False),
        ],
    )
    def test_is_text(self, content_type: str, expected: bool) -> None:
        assert PortValue.inline(b"x", content_type).is_text is expected

    async def test_payload_keeps_binary_bytes(self) -> None:
        data = b"\x89PNG\r\n\x1a\n\xff\x00"
        assert await PortValue.inline(data, "image/png").payload() == data

    async def test_payload_decodes_utf8_octet_stream(self) -> None:
        assert await PortValue.inline("café".encode()).payload() == "café"

    async def test_payload_of_declared_text(self) -> None:
        assert await PortValue.inline(b"ok\xff", "text/plain").payload() == "ok\ufffd"

    async def test_read_inline(self) -> None:
        assert await PortValue.inline(b"abc").read() == b"abc"

    async def test_read_reference_uses_fetcher(self) -> None:
        fetched: list[str] = []

        async def fetch(url: str) -> bytes:
            fetched.append(url)
            return b"remote"

        value = PortValue.referenced("http://x/1", size=6, fetch=fetch)
        assert value.kind is PortValueKind.REFERENCE
        assert await value.text() == "remote"
        assert fetched == ["http://x/1"]

    async def test_read_error_raises(self) -> None:
        with pytest.raises(ValueError, match="boom"):
            await PortValue.failed("boom").read()

    async def test_read_without_fetcher_raises(self) -> None:
        with pytest.raises(ValueError, match="no way to fetch"):
            await PortValue.referenced("http://x/1").read()


class TestResolve:
    def test_scalar(self) -> None:
        port = _port("out1", 0, _value(5, "http://x/out1"))
        value = resolve(port)
        assert value.reference == "http://x/out1"
        assert value.size == 5

    def test_full_index(self) -> None:
        assert resolve(_list_port(), (1,)).reference == "b"
        assert resolve(_nested_port(), (2, 1)).reference == "d"

    def test_partial_index_is_first_leaf(self) -> None:
        assert resolve(_list_port()).reference == "a"
        assert resolve(_nested_port(), (0,)).reference == "a"

    def test_out_of_range(self) -> None:
        with pytest.raises(IndexOutOfRangeError) as info:
            resolve(_list_port(), (5,))
        assert info.value.length == 3

    def test_index_too_long(self) -> None:
        with pytest.raises(IndexOutOfRangeError):
            resolve(_list_port(), (0, 0))

    def test_negative_component(self) -> None:
        with pytest.raises(IndexOutOfRangeError):
            resolve(_list_port(), (-1,))

    def test_empty_sub_list(self) -> None:
        with pytest.raises(IndexOutOfRangeError):
            resolve(_nested_port(), (1,))

    def test_error_leaf(self) -> None:
        value = resolve(_nested_port(), (2, 0))
        assert value.is_error
        assert value.error == "failed"

    def test_error_in_place_of_sub_list(self) -> None:
        port = _port("p", 2, {"list": [{"error": {"message": "whole list failed"}}]})
        assert resolve(port, (0, 3)).error == "whole list failed"

    def test_port_value_method(self) -> None:
        assert _list_port().value((2,)).reference == "c"


class TestTraversal:
    def test_iter_indices(self) -> None:
        assert list(iter_indices(_nested_port())) == [(0, 0), (0, 1), (2, 0), (2, 1)]

    def test_leaves(self) -> None:
        refs = [v.reference for _, v in leaves(_list_port())]
        assert refs == ["a", "b", "c"]

    def test_total_size(self) -> None:
        assert total_size(_list_port()) == 6
        assert _nested_port().total_size == 7

    def test_total_size_matches_sum_of_resolved(self) -> None:
        port = _nested_port()
        assert port.total_size == sum(resolve(port, i).size for i in iter_indices(port))

    def test_total_size_scalar(self) -> None:
        assert _port("out1", 0, _value(9)).total_size == 9

    def test_str(self) -> None:
        assert str(_list_port()) == "list (depth 1)"


class TestParseCoordinate:
    def test_full(self) -> None:
        assert parse_coordinate("OUT:0,2,1") == ("OUT", (0, 2, 1))

    def test_name_only(self) -> None:
        assert parse_coordinate("OUT") == ("OUT", ())
        assert parse_coordinate("OUT:") == ("OUT", ())

    def test_whitespace(self) -> None:
        assert parse_coordinate(" OUT : 1 , 2 ") == ("OUT", (1, 2))

    @pytest.mark.parametrize("coordinate", ["OUT:x", "OUT:1,,2", ":1", "OUT:-1", "OUT:1.5"])
    def test_malformed(self, coordinate: str) -> None:
        with pytest.raises(MalformedCoordinateError):
            parse_coordinate(coordinate)
