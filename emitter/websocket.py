"""A byte-stream transport carrying MQTT over a websocket connection."""

from __future__ import annotations

import enum
import threading
from typing import Any, Protocol


class MessageKind(enum.IntEnum):
    """Websocket message kinds."""

    TEXT = 1
    BINARY = 2
    CLOSE = 8
    PING = 9
    PONG = 10


class _MessageReader(Protocol):
    def read(self, size: int) -> bytes:
        ...


class _MessageWriter(Protocol):
    def write(self, data: bytes) -> int | None:
        ...

    def close(self) -> None:
        ...


class WebSocketConnection(Protocol):
    """The message-oriented websocket connection the transport wraps."""

    def next_reader(self) -> tuple[int, _MessageReader]:
        ...

    def next_writer(self, kind: int) -> _MessageWriter:
        ...

    def close(self) -> None:
        ...

    def local_address(self) -> Any:
        ...

    def remote_address(self) -> Any:
        ...

    def set_read_deadline(self, deadline: Any) -> None:
        ...

    def set_write_deadline(self, deadline: Any) -> None:
        ...


_DATA_KINDS = frozenset({MessageKind.TEXT, MessageKind.BINARY})


class WebSocketTransport:
    """Presents a websocket connection as a stream of bytes."""

    def __init__(self, socket: WebSocketConnection) -> None:
        self._socket = socket
        self._reader: _MessageReader | None = None
        self._lock = threading.Lock()

    def __enter__(self) -> WebSocketTransport:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def read(self, size: int) -> bytes:
        """Read up to size bytes from the current data message.

        Control messages are skipped. An empty result marks the end of a message;
        the next read continues with the following one. Errors of the
        connection, such as EOFError, propagate.
        """
        if self._reader is None:
            while True:
                kind, reader = self._socket.next_reader()
                if kind in _DATA_KINDS:
                    self._reader = reader
                    break

        data = self._reader.read(size)
        if not data and size > 0:
            self._reader = None
        return data

    def write(self, data: bytes) -> int:
        """Send data as a single binary message; return the bytes written."""
        with self._lock:
            writer = self._socket.next_writer(MessageKind.BINARY)
            written = writer.write(data)
            writer.close()
        return len(data) if written is None else written

    def close(self) -> None:
        """Close the connection."""
        self._socket.close()

    def local_address(self) -> Any:
        """Return the local network address."""
        return self._socket.local_address()

    def remote_address(self) -> Any:
        """Return the remote network address."""
        return self._socket.remote_address()

    def set_deadline(self, deadline: Any) -> None:
        """Set both the read and the write deadline."""
        self._socket.set_read_deadline(deadline)
        self._socket.set_write_deadline(deadline)

    def set_read_deadline(self, deadline: Any) -> None:
        """Set the deadline for reads."""
        self._socket.set_read_deadline(deadline)

    def set_write_deadline(self, deadline: Any) -> None:
        """Set the deadline for writes."""
        self._socket.set_write_deadline(deadline)