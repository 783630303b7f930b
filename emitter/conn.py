"""Buffered, rate-limited connections with transparent sniffing of incoming data."""

from __future__ import annotations

import collections
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol


class _Source(Protocol):
    def read(self, size: int) -> bytes: ...


class RateLimiter:
    """Allows at most `rate` events in any window of `per` seconds."""

    def __init__(
        self, rate: int, per: float = 1.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        self._per = per
        self._clock = clock
        self._events: collections.deque[float] = collections.deque(maxlen=rate)
        self._lock = threading.Lock()

    def limit(self) -> bool:
        """Record an event; return True if it exceeds the rate and was refused."""
        with self._lock:
            now = self._clock()
            if len(self._events) == self._events.maxlen and now - self._events[0] < self._per:
                return True
            self._events.append(now)
            return False


class Sniffer:
    """A reader that can record incoming bytes and replay them afterwards."""

    def __init__(self, source: _Source) -> None:
        self._source = source
        self._buffer = bytearray()
        self._position = 0
        self._size = 0
        self._sniffing = False

    def read(self, size: int) -> bytes:
        """Read up to size bytes, replaying recorded bytes first."""
        if self._size > self._position:
            end = min(self._size, self._position + size)
            chunk = bytes(self._buffer[self._position : end])
            self._position = end
            return chunk
        if not self._sniffing and self._buffer:
            self._buffer = bytearray()

        data = self._source.read(size)
        if data and self._sniffing:
            self._buffer += data
        return data

    def reset(self, sniffing: bool) -> None:
        """Rewind to the start of the recorded bytes and set the recording mode."""
        self._sniffing = sniffing
        self._position = 0
        self._size = len(self._buffer)


class _SocketReader:
    def __init__(self, sock: Any) -> None:
        self._socket = sock

    def read(self, size: int) -> bytes:
        return self._socket.recv(size)


class Conn:
    """A socket wrapper with sniffing, write rate limiting and periodic flushing."""

    def __init__(
        self,
        sock: Any,
        write_rate: int = 0,
        *,
        limiter: RateLimiter | None = None,
        flush_interval: float | None = 1.0,
    ) -> None:
        if write_rate <= 0 or write_rate > 1000:
            write_rate = 60
        self._socket = sock
        self._reader = Sniffer(_SocketReader(sock))
        self._limiter = limiter if limiter is not None else RateLimiter(write_rate)
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._stop = threading.Event()
        if flush_interval:
            threading.Thread(
                target=self._flush_periodically, args=(flush_interval,), daemon=True
            ).start()

    def _flush_periodically(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.flush()
            except OSError:
                return

    def __enter__(self) -> Conn:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def read(self, size: int) -> bytes:
        """Read up to size bytes from the connection."""
        return self._reader.read(size)

    def write(self, data: bytes) -> int:
        """Write data, queueing it when the write rate is exceeded."""
        data = bytes(data)
        if self._limiter.limit():
            return self._enqueue(data)
        if self.pending() > 0:
            self._enqueue(data)
            return self.flush()
        self._socket.sendall(data)
        return len(data)

    def flush(self) -> int:
        """Send everything queued; return the number of bytes sent."""
        with self._lock:
            if not self._buffer:
                return 0
            data = bytes(self._buffer)
            self._buffer.clear()
            self._socket.sendall(data)
            return len(data)

    def close(self) -> None:
        """Stop periodic flushing and close the socket."""
        self._stop.set()
        self._socket.close()

    def pending(self) -> int:
        """Return the number of queued bytes."""
        with self._lock:
            return len(self._buffer)

    def local_address(self) -> Any:
        """Return the local address of the socket."""
        return self._socket.getsockname()

    def remote_address(self) -> Any:
        """Return the remote address of the socket."""
        return self._socket.getpeername()

    def settimeout(self, timeout: float | None) -> None:
        """Set the timeout for socket operations."""
        self._socket.settimeout(timeout)

    def _enqueue(self, data: bytes) -> int:
        with self._lock:
            self._buffer += data
            return len(data)

    def start_sniffing(self) -> Sniffer:
        """Start recording incoming bytes and return the recording reader."""
        self._reader.reset(True)
        return self._reader

    def done_sniffing(self) -> None:
        """Stop recording; recorded bytes are replayed by subsequent reads."""
        self._reader.reset(False)