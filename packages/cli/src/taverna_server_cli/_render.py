"""Text rendering of output port values (fetches data as needed)."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any

from taverna_server_sdk import IndexOutOfRangeError, leaves, resolve

from taverna_server_cli._output import describe_value

if TYPE_CHECKING:
    from taverna_server_sdk import OutputPort, PortValue
    from taverna_server_sdk.schemas import NodeDescriptor


async def value_text(value: PortValue) -> str:
    """Payload of *value* as text, or an error marker."""
    if value.is_error:
        return f"<error: {value.error}>"
    return await value.text()


async def render_port(port: OutputPort, *, refs: bool = False) -> str:
    """Render the whole value tree of *port* on one line.

    Depth 0 gives the bare value; lists render as ``[a, b, ...]``. With
    *refs*, references are shown in place of data.
    """
    return await _render_node(port, port.root, (), refs=refs)


async def value_data(value: PortValue) -> dict[str, Any]:
    """JSON fields carrying the payload of *value*; binary data is base64-encoded."""
    payload = await value.payload()
    if isinstance(payload, bytes):
        return {"data": base64.b64encode(payload).decode("ascii"), "encoding": "base64"}
    return {"data": payload}


async def describe_port(port: OutputPort, *, with_data: bool = False) -> dict[str, Any]:
    """JSON-friendly description of *port* and its leaves."""
    values = []
    for index, value in leaves(port):
        entry: dict[str, Any] = {"index": list(index), **describe_value(value)}
        if with_data and not value.is_error:
            entry.update(await value_data(value))
        values.append(entry)
    return {
        "name": port.name,
        "depth": port.depth,
        "total_size": port.total_size,
        "values": values,
    }


async def _render_node(
    port: OutputPort, node: NodeDescriptor, index: tuple[int, ...], *, refs: bool
) -> str:
    if node.items is not None:
        parts = [
            await _render_node(port, child, (*index, i), refs=refs)
            for i, child in enumerate(node.items)
        ]
        return "[" + ", ".join(parts) + "]"
    try:
        value = resolve(port, index)
    except IndexOutOfRangeError:
        return "<no value>"
    if refs and value.reference is not None:
        return value.reference
    return await value_text(value)
