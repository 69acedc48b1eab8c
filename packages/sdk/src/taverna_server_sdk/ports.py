"""Output ports, port values, and index addressing into list-typed outputs.

An output port of depth ``n`` holds a tree of nested lists ``n`` levels deep
whose leaves are either data (fetched lazily from a reference) or error
markers. Values are addressed by an index tuple of at most ``n`` integers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from taverna_server_sdk.exceptions import IndexOutOfRangeError, MalformedCoordinateError
from taverna_server_sdk.types import PortValueKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator, Sequence

    from taverna_server_sdk.schemas import NodeDescriptor, OutputPortDescriptor

    Fetcher = Callable[[str], Awaitable[bytes]]

Index = tuple[int, ...]

_TEXT_SUBTYPES = ("json", "xml", "javascript", "csv")


# =============================================================================
# Port values
# =============================================================================


@dataclass(frozen=True)
class PortValue:
    """A single resolved output value.

    Holds exactly one of inline ``data``, a ``reference`` URI whose payload
    is fetched on demand, or an ``error`` message.
    """

    content_type: str = "application/octet-stream"
    size: int = 0
    data: bytes | None = None
    reference: str | None = None
    error: str | None = None
    _fetch: Fetcher | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        held = [x for x in (self.data, self.reference, self.error) if x is not None]
        if len(held) != 1:
            raise ValueError("a port value holds exactly one of data, reference or error")

    @classmethod
    def inline(cls, data: bytes, content_type: str = "application/octet-stream") -> PortValue:
        return cls(content_type=content_type, size=len(data), data=data)

    @classmethod
    def referenced(
        cls,
        reference: str,
        *,
        content_type: str = "application/octet-stream",
        size: int = 0,
        fetch: Fetcher | None = None,
    ) -> PortValue:
        return cls(content_type=content_type, size=size, reference=reference, _fetch=fetch)

    @classmethod
    def failed(cls, message: str) -> PortValue:
        return cls(content_type="text/plain", size=0, error=message)

    @property
    def kind(self) -> PortValueKind:
        if self.error is not None:
            return PortValueKind.ERROR
        if self.data is not None:
            return PortValueKind.DATA
        return PortValueKind.REFERENCE

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def is_text(self) -> bool:
        """Whether the declared content type is textual."""
        mime = self.content_type.split(";", 1)[0].strip().lower()
        major, _, minor = mime.partition("/")
        return major == "text" or minor in _TEXT_SUBTYPES or minor.endswith(("+xml", "+json"))

    async def payload(self) -> str | bytes:
        """Return the payload as text when it is text, raw bytes otherwise.

        Under a non-textual content type, bytes that are valid UTF-8 are still
        returned as text.
        """
        data = await self.read()
        if self.is_text:
            return data.decode("utf-8", errors="replace")
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return data

    async def read(self) -> bytes:
        """Return the payload, fetching it from the reference if needed."""
        if self.data is not None:
            return self.data
        if self.error is not None:
            raise ValueError(f"value is an error: {self.error}")
        if self._fetch is None:
            raise ValueError(f"no way to fetch reference {self.reference}")
        return await self._fetch(self.reference or "")

    async def text(self, encoding: str = "utf-8") -> str:
        """Return the payload decoded as text."""
        return (await self.read()).decode(encoding, errors="replace")


# =============================================================================
# Output ports
# =============================================================================


class OutputPort:
    """A named workflow output and its value tree."""

    def __init__(
        self,
        name: str,
        depth: int,
        root: NodeDescriptor,
        *,
        fetch: Fetcher | None = None,
    ) -> None:
        self.name = name
        self.depth = depth
        self.root = root
        self._fetch = fetch

    @classmethod
    def from_descriptor(
        cls, descriptor: OutputPortDescriptor, *, fetch: Fetcher | None = None
    ) -> OutputPort:
        return cls(descriptor.name, descriptor.depth, descriptor, fetch=fetch)

    def value(self, index: Sequence[int] = ()) -> PortValue:
        """Resolve the value at *index*; see :func:`resolve`."""
        return resolve(self, index)

    @property
    def total_size(self) -> int:
        return total_size(self)

    def __repr__(self) -> str:
        return f"OutputPort(name={self.name!r}, depth={self.depth})"

    def __str__(self) -> str:
        return f"{self.name} (depth {self.depth})"


# =============================================================================
# Addressing
# =============================================================================


def resolve(port: OutputPort, index: Sequence[int] = ()) -> PortValue:
    """Resolve *index* against *port* to a single value.

    A full-length index names one leaf. A shorter index (including the empty
    one on a list port) selects a sub-list, which is represented by its first
    leaf. A leaf met above the full depth (an error standing in for a whole
    sub-list) is returned as is.

    Raises:
        IndexOutOfRangeError: the index is longer than the port's depth, or a
            component falls outside the list at its level, or the selected
            sub-list is empty.
    """
    idx = tuple(index)
    if len(idx) > port.depth:
        raise IndexOutOfRangeError(
            f"Port '{port.name}' has depth {port.depth}; index {list(idx)} is too long",
            index=idx,
            length=port.depth,
        )

    node = port.root
    for level, i in enumerate(idx):
        if node.items is None:
            break
        if i < 0 or i >= len(node.items):
            raise IndexOutOfRangeError(
                f"Index {i} out of range at level {level} of port '{port.name}' "
                f"(length {len(node.items)})",
                index=idx[: level + 1],
                length=len(node.items),
            )
        node = node.items[i]

    while node.items is not None:
        if not node.items:
            raise IndexOutOfRangeError(
                f"Port '{port.name}' has an empty list at {list(idx)}",
                index=idx,
                length=0,
            )
        node = node.items[0]

    return _leaf(port, node, idx)


def iter_indices(port: OutputPort) -> Iterator[Index]:
    """Yield the index of every leaf of *port*, in lexicographic order."""
    yield from (idx for idx, _ in _walk(port.root, ()))


def leaves(port: OutputPort) -> Iterator[tuple[Index, PortValue]]:
    """Yield ``(index, value)`` for every leaf of *port*."""
    for idx, node in _walk(port.root, ()):
        yield idx, _leaf(port, node, idx)


def total_size(port: OutputPort) -> int:
    """Sum of the sizes of every leaf reachable under *port*."""
    return sum(value.size for _, value in leaves(port))


def parse_coordinate(coordinate: str) -> tuple[str, Index]:
    """Parse ``NAME:I1,I2,...`` into ``(NAME, (I1, I2, ...))``.

    ``NAME`` or ``NAME:`` gives an empty index. The name ends at the first
    colon.

    Raises:
        MalformedCoordinateError: missing name, or a component that is not a
            non-negative integer.
    """
    name, _, rest = coordinate.partition(":")
    name = name.strip()
    if not name:
        raise MalformedCoordinateError(
            f"Coordinate '{coordinate}' has no port name", coordinate=coordinate
        )

    rest = rest.strip()
    if not rest:
        return name, ()

    index: list[int] = []
    for part in rest.split(","):
        try:
            value = int(part.strip())
        except ValueError:
            raise MalformedCoordinateError(
                f"Coordinate '{coordinate}': '{part.strip()}' is not an integer",
                coordinate=coordinate,
            ) from None
        if value < 0:
            raise MalformedCoordinateError(
                f"Coordinate '{coordinate}': index {value} is negative",
                coordinate=coordinate,
            )
        index.append(value)
    return name, tuple(index)


def _walk(node: NodeDescriptor, prefix: Index) -> Iterator[tuple[Index, NodeDescriptor]]:
    if node.items is None:
        if node.value is not None or node.error is not None:
            yield prefix, node
        return
    for i, child in enumerate(node.items):
        yield from _walk(child, (*prefix, i))


def _leaf(port: OutputPort, node: NodeDescriptor, idx: Index) -> PortValue:
    if node.error is not None:
        return PortValue.failed(node.error.message or node.error.href or "error")
    if node.value is not None:
        return PortValue.referenced(
            node.value.href,
            content_type=node.value.content_type,
            size=node.value.size,
            fetch=port._fetch,
        )
    raise IndexOutOfRangeError(
        f"Port '{port.name}' has no value at {list(idx)}",
        index=idx,
        length=0,
    )
