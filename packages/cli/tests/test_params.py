"""Tests for _params module."""

from __future__ import annotations

import click
import pytest

from taverna_server_cli._params import COORDINATE, PORT_ASSIGNMENT, SERVER_ADDRESS


class TestServerAddress:
    def test_valid(self) -> None:
        address = "http://h:8080/taverna"
        assert SERVER_ADDRESS.convert(address, None, None) == address

    def test_invalid(self) -> None:
        with pytest.raises(click.BadParameter):
            SERVER_ADDRESS.convert("h:8080", None, None)


class TestPortAssignment:
    def test_split_at_first_colon(self) -> None:
        assert PORT_ASSIGNMENT.convert("in1:http://x/y", None, None) == ("in1", "http://x/y")

    def test_empty_value(self) -> None:
        assert PORT_ASSIGNMENT.convert("in1:", None, None) == ("in1", "")

    @pytest.mark.parametrize("value", ["in1", ":value"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(click.BadParameter):
            PORT_ASSIGNMENT.convert(value, None, None)


class TestCoordinate:
    def test_valid(self) -> None:
        assert COORDINATE.convert("OUT:0,2,1", None, None) == ("OUT", (0, 2, 1))

    def test_invalid(self) -> None:
        with pytest.raises(click.BadParameter, match="not an integer"):
            COORDINATE.convert("OUT:x", None, None)
