"""Lexicographically sortable message identifiers."""

from __future__ import annotations

import os
import struct
import threading
import time as _time
from collections.abc import Sequence

from emitter.ssid import WILDCARD, Ssid

_MASK = 0xFFFFFFFF
_FIXED = 16

# Timestamps in identifiers are stored as seconds since this moment (2018-01-01 UTC).
TIME_OFFSET = 1514764800

# Time-to-live used for retained messages.
RETAINED_TTL = _MASK

_UNIQUE = struct.unpack(">I", os.urandom(4))[0]


class _Sequence:
    """A wrapping 32-bit counter safe to share between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def next(self) -> int:
        with self._lock:
            self._value = (self._value + 1) & _MASK
            return self._value


_sequence = _Sequence()


def _encode_time(t: int) -> int:
    return _MASK - ((t - TIME_OFFSET) & _MASK)


class MessageId(bytes):
    """A message identifier: prefix, reversed time, sequence, node and SSID."""

    def with_time(self, t: int) -> MessageId:
        """Return a copy of this identifier carrying the given unix time."""
        return MessageId(self[:4] + struct.pack(">I", _encode_time(t)) + self[8:])

    def time(self) -> int:
        """Return the unix time stored in the identifier."""
        return (_MASK - struct.unpack_from(">I", self, 4)[0]) + TIME_OFFSET

    def contract(self) -> int:
        """Return the contract stored in the identifier."""
        return struct.unpack_from(">I", self, _FIXED)[0]

    def ssid(self) -> Ssid:
        """Return the SSID stored in the identifier."""
        count = (len(self) - _FIXED) // 4
        return Ssid(struct.unpack_from(f">{count}I", self, _FIXED))

    def has_prefix(self, ssid: Sequence[int], cutoff: int) -> bool:
        """Check the prefix against an SSID and that the time is not before cutoff."""
        prefix = struct.unpack_from(">I", self, 0)[0]
        return prefix == (ssid[0] ^ ssid[1]) and self.time() >= cutoff

    def match(self, query: Sequence[int], start: int, until: int) -> bool:
        """Match the identifier against an SSID query and a time range."""
        if len(query) * 4 > len(self) - _FIXED:
            return False
        stored = struct.unpack_from(f">{len(query)}I", self, _FIXED)
        for wanted, actual in zip(reversed(query), reversed(stored)):
            if wanted != actual and wanted != WILDCARD:
                return False
        return start <= self.time() <= until


def new_id(ssid: Sequence[int]) -> MessageId:
    """Create a new identifier for the current time."""
    now = (int(_time.time()) - TIME_OFFSET) & _MASK
    head = struct.pack(
        ">IIII",
        ssid[0] ^ ssid[1],
        _MASK - now,
        _MASK - _sequence.next(),
        _UNIQUE,
    )
    return MessageId(head + struct.pack(f">{len(ssid)}I", *ssid))


def new_prefix(ssid: Sequence[int], from_time: int) -> MessageId:
    """Create an identifier holding only the prefix and time."""
    return MessageId(struct.pack(">II", ssid[0] ^ ssid[1], _encode_time(from_time)))