"""Connection matchers based on the first bytes a client sends."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Sequence
from typing import Protocol


class Reader(Protocol):
    """Anything with a read(size) method returning bytes."""

    def read(self, size: int) -> bytes: ...


Matcher = Callable[[Reader], bool]

DEFAULT_HTTP_METHODS = (
    "OPTIONS",
    "GET",
    "HEAD",
    "POST",
    "PATCH",
    "PUT",
    "DELETE",
    "TRACE",
    "CONNECT",
)


def _read_up_to(reader: Reader, size: int) -> bytes:
    """Read until size bytes, end of stream or an I/O error, whichever comes first."""
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = reader.read(size - len(buf))
        except OSError:
            break
        if not chunk:
            break
        buf += chunk
    return bytes(buf)


@dataclasses.dataclass(eq=False)
class _Node:
    prefix: bytes
    terminal: bool = False
    next: dict[int, _Node] = dataclasses.field(default_factory=dict)


def _split_prefix(values: Sequence[bytes]) -> tuple[bytes, list[bytes]]:
    if not values or not values[0]:
        return b"", list(values)
    if len(values) == 1:
        return values[0], [b""]
    length = 0
    for column in zip(*values):
        if any(byte != column[0] for byte in column):
            break
        length += 1
    return values[0][:length], [value[length:] for value in values]


def _new_node(values: Sequence[bytes]) -> _Node:
    if not values:
        return _Node(b"", terminal=True)
    if len(values) == 1:
        return _Node(values[0], terminal=True)

    prefix, rest = _split_prefix(values)
    node = _Node(prefix)
    groups: dict[int, list[bytes]] = {}
    for value in rest:
        if not value:
            node.terminal = True
            continue
        groups.setdefault(value[0], []).append(value[1:])
    node.next = {first: _new_node(tails) for first, tails in groups.items()}
    return node


def _match(node: _Node, data: bytes, prefix: bool) -> bool:
    while True:
        length = len(node.prefix)
        if length > 0:
            length = min(length, len(data))
            if data[:length] != node.prefix:
                return False
        if node.terminal and (prefix or len(node.prefix) == len(data)):
            return True
        if length >= len(data):
            return False
        following = node.next.get(data[length])
        if following is None:
            return False
        data = data[length + 1 :]
        node = following


class PatriciaTree:
    """An immutable patricia tree over byte strings."""

    def __init__(self, *values: str | bytes) -> None:
        encoded = [v.encode() if isinstance(v, str) else bytes(v) for v in values]
        self._root = _new_node(encoded)
        self._max_depth = max((len(v) for v in encoded), default=0) + 1

    def match(self, reader: Reader) -> bool:
        """Return whether what the reader holds equals one of the values."""
        return _match(self._root, _read_up_to(reader, self._max_depth), False)

    def match_prefix(self, reader: Reader) -> bool:
        """Return whether what the reader holds starts with one of the values."""
        return _match(self._root, _read_up_to(reader, self._max_depth), True)


def match_any() -> Matcher:
    """Return a matcher that accepts every connection."""
    return lambda reader: True


def match_prefix(*args: str | bytes) -> Matcher:
    """Return a matcher for connections that start with any of the given strings."""
    return PatriciaTree(*args).match_prefix


def match_http(*args: str | bytes) -> Matcher:
    """Return a matcher for HTTP requests, with optional extra methods."""
    return match_prefix(*DEFAULT_HTTP_METHODS, *args)