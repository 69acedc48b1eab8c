"""Click parameter types shared by the commands."""

from __future__ import annotations

from typing import Any

import click

from taverna_server_sdk import MalformedCoordinateError, parse_coordinate, validate_address


class ServerAddressType(click.ParamType):
    """Absolute http(s) URI of a server, e.g. http://example.com:8080/taverna."""

    name = "server-address"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> str:
        try:
            return validate_address(str(value))
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


class PortAssignmentType(click.ParamType):
    """``NAME:VALUE`` pair; the value may itself contain colons."""

    name = "name:value"

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> tuple[str, str]:
        if isinstance(value, tuple):
            return value
        name, sep, rest = str(value).strip().partition(":")
        if not sep or not name:
            self.fail(f"'{value}' is not of the form NAME:VALUE", param, ctx)
        return name, rest


class CoordinateType(click.ParamType):
    """``NAME:I1,I2,...`` address of one value of an output port."""

    name = "name:i1,i2,..."

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> tuple[str, tuple[int, ...]]:
        if isinstance(value, tuple):
            return value
        try:
            return parse_coordinate(str(value))
        except MalformedCoordinateError as exc:
            self.fail(str(exc), param, ctx)


SERVER_ADDRESS = ServerAddressType()
PORT_ASSIGNMENT = PortAssignmentType()
COORDINATE = CoordinateType()
