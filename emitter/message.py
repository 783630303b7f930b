"""Messages, message frames and their compressed binary encoding."""

from __future__ import annotations

import dataclasses
import datetime
from collections.abc import Iterable

from emitter.message_id import MessageId, new_id
from emitter.ssid import Ssid

_MASK32 = 0xFFFFFFFF


class CodecError(ValueError):
    """Raised when a buffer cannot be decoded."""


# ------------------------------------------------------------------------------------
# Block compression (snappy block format)

_MAX_BLOCK_SIZE = 65536
_INPUT_MARGIN = 15
_MIN_NON_LITERAL_BLOCK_SIZE = 1 + 1 + _INPUT_MARGIN
_MAX_TABLE_SIZE = 1 << 14
_TABLE_MASK = _MAX_TABLE_SIZE - 1

_TAG_LITERAL = 0
_TAG_COPY1 = 1
_TAG_COPY2 = 2
_TAG_COPY4 = 3

_CORRUPT = "snappy: corrupt input"


def _put_uvarint(out: bytearray, value: int) -> None:
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)


def _load32(src: bytes, i: int) -> int:
    return int.from_bytes(src[i : i + 4], "little")


def _hash(value: int, shift: int) -> int:
    return ((value * 0x1E35A7BD) & _MASK32) >> shift


def _emit_literal(out: bytearray, literal: bytes) -> None:
    n = len(literal) - 1
    if n < 60:
        out.append((n << 2) | _TAG_LITERAL)
    elif n < 1 << 8:
        out += bytes((60 << 2 | _TAG_LITERAL, n))
    else:
        out += bytes((61 << 2 | _TAG_LITERAL, n & 0xFF, n >> 8))
    out += literal


def _emit_copy(out: bytearray, offset: int, length: int) -> None:
    low, high = offset & 0xFF, (offset >> 8) & 0xFF
    while length >= 68:
        out += bytes((63 << 2 | _TAG_COPY2, low, high))
        length -= 64
    if length > 64:
        out += bytes((59 << 2 | _TAG_COPY2, low, high))
        length -= 60
    if length >= 12 or offset >= 2048:
        out += bytes(((length - 1) << 2 | _TAG_COPY2, low, high))
        return
    out += bytes(((offset >> 8) << 5 | (length - 4) << 2 | _TAG_COPY1, low))


def _encode_block(out: bytearray, src: bytes) -> None:
    shift = 24
    table_size = 1 << 8
    while table_size < _MAX_TABLE_SIZE and table_size < len(src):
        table_size *= 2
        shift -= 1

    table = [0] * _MAX_TABLE_SIZE
    s_limit = len(src) - _INPUT_MARGIN
    next_emit = 0
    s = 1
    next_hash = _hash(_load32(src, s), shift)

    while True:
        skip = 32
        next_s = s
        while True:
            s = next_s
            step = skip >> 5
            next_s = s + step
            skip += step
            if next_s > s_limit:
                _emit_remainder(out, src, next_emit)
                return
            candidate = table[next_hash & _TABLE_MASK]
            table[next_hash & _TABLE_MASK] = s
            next_hash = _hash(_load32(src, next_s), shift)
            if _load32(src, s) == _load32(src, candidate):
                break

        if s > next_emit:
            _emit_literal(out, src[next_emit:s])

        while True:
            base = s
            s += 4
            i = candidate + 4
            while s < len(src) and src[i] == src[s]:
                i += 1
                s += 1
            _emit_copy(out, base - candidate, s - base)
            next_emit = s
            if s >= s_limit:
                _emit_remainder(out, src, next_emit)
                return

            x = int.from_bytes(src[s - 1 : s + 7], "little")
            table[_hash(x & _MASK32, shift) & _TABLE_MASK] = s - 1
            current = (x >> 8) & _MASK32
            current_hash = _hash(current, shift) & _TABLE_MASK
            candidate = table[current_hash]
            table[current_hash] = s
            if current != _load32(src, candidate):
                next_hash = _hash((x >> 16) & _MASK32, shift)
                s += 1
                break


def _emit_remainder(out: bytearray, src: bytes, next_emit: int) -> None:
    if next_emit < len(src):
        _emit_literal(out, src[next_emit:])


def snappy_encode(data: bytes) -> bytes:
    """Compress data using the snappy block format."""
    data = bytes(data)
    out = bytearray()
    _put_uvarint(out, len(data))
    for start in range(0, len(data), _MAX_BLOCK_SIZE):
        block = data[start : start + _MAX_BLOCK_SIZE]
        if len(block) < _MIN_NON_LITERAL_BLOCK_SIZE:
            _emit_literal(out, block)
        else:
            _encode_block(out, block)
    return bytes(out)


def snappy_decode(data: bytes) -> bytes:
    """Decompress a snappy block; raise CodecError if it is corrupt."""
    data = bytes(data)
    length, pos, shift = 0, 0, 0
    while True:
        if pos >= len(data) or shift > 63:
            raise CodecError(_CORRUPT)
        byte = data[pos]
        pos += 1
        length |= (byte & 0x7F) << shift
        if byte < 0x80:
            break
        shift += 7
    if length > _MASK32:
        raise CodecError("snappy: decoded block is too large")

    out = bytearray()
    end = len(data)
    while pos < end:
        tag = data[pos]
        kind = tag & 0x03
        if kind == _TAG_LITERAL:
            x = tag >> 2
            if x < 60:
                pos += 1
            else:
                extra = x - 59
                if pos + 1 + extra > end:
                    raise CodecError(_CORRUPT)
                x = int.from_bytes(data[pos + 1 : pos + 1 + extra], "little")
                pos += 1 + extra
            size = x + 1
            if pos + size > end or len(out) + size > length:
                raise CodecError(_CORRUPT)
            out += data[pos : pos + size]
            pos += size
            continue

        if kind == _TAG_COPY1:
            if pos + 2 > end:
                raise CodecError(_CORRUPT)
            size = 4 + ((tag >> 2) & 0x07)
            offset = ((tag & 0xE0) << 3) | data[pos + 1]
            pos += 2
        elif kind == _TAG_COPY2:
            if pos + 3 > end:
                raise CodecError(_CORRUPT)
            size = 1 + (tag >> 2)
            offset = int.from_bytes(data[pos + 1 : pos + 3], "little")
            pos += 3
        else:
            if pos + 5 > end:
                raise CodecError(_CORRUPT)
            size = 1 + (tag >> 2)
            offset = int.from_bytes(data[pos + 1 : pos + 5], "little")
            pos += 5

        if offset <= 0 or offset > len(out) or len(out) + size > length:
            raise CodecError(_CORRUPT)
        if offset >= size:
            start = len(out) - offset
            out += out[start : start + size]
        else:
            for _ in range(size):
                out.append(out[-offset])

    if len(out) != length:
        raise CodecError(_CORRUPT)
    return bytes(out)


# ------------------------------------------------------------------------------------
# Binary message codec


class _Reader:
    """Sequential reader over a decoded buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def uvarint(self) -> int:
        value, shift = 0, 0
        while True:
            if self._pos >= len(self._data):
                raise CodecError("EOF" if shift == 0 else "unexpected EOF")
            byte = self._data[self._pos]
            self._pos += 1
            if byte < 0x80:
                if shift == 63 and byte > 1:
                    raise CodecError("binary: varint overflows a 64-bit integer")
                return value | (byte << shift)
            value |= (byte & 0x7F) << shift
            shift += 7
            if shift > 63:
                raise CodecError("binary: varint overflows a 64-bit integer")

    def chunk(self) -> bytes:
        size = self.uvarint()
        if size == 0:
            return b""
        if self._pos + size > len(self._data):
            raise CodecError("EOF")
        value = self._data[self._pos : self._pos + size]
        self._pos += size
        return value


def _write_message(out: bytearray, message: Message) -> None:
    for part in (message.id, message.channel, message.payload):
        _put_uvarint(out, len(part))
        out += part
    _put_uvarint(out, message.ttl)


def _read_message(reader: _Reader) -> Message:
    message_id = MessageId(reader.chunk())
    channel = reader.chunk()
    payload = reader.chunk()
    ttl = reader.uvarint() & _MASK32
    return Message(message_id, channel, payload, ttl)


@dataclasses.dataclass
class Message:
    """A message which is forwarded to subscribers or stored."""

    id: MessageId
    channel: bytes = b""
    payload: bytes = b""
    ttl: int = 0

    @classmethod
    def create(cls, ssid: Iterable[int], channel: bytes, payload: bytes) -> Message:
        """Create a message for the SSID with a freshly generated identifier."""
        return cls(new_id(tuple(ssid)), bytes(channel), bytes(payload))

    def size(self) -> int:
        """Return the size of the payload in bytes."""
        return len(self.payload)

    def time(self) -> int:
        """Return the unix time carried by the message identifier."""
        return self.id.time()

    def ssid(self) -> Ssid:
        """Return the SSID carried by the message identifier."""
        return self.id.ssid()

    def contract(self) -> int:
        """Return the contract carried by the message identifier."""
        return self.id.contract()

    def stored(self) -> bool:
        """Return whether the message is or should be stored."""
        return self.ttl > 0

    def expires(self) -> datetime.datetime:
        """Return the moment the message expires."""
        created = datetime.datetime.fromtimestamp(self.time(), tz=datetime.timezone.utc)
        return created + datetime.timedelta(seconds=self.ttl)

    def encode(self) -> bytes:
        """Encode the message into its compressed binary form."""
        out = bytearray()
        _write_message(out, self)
        return snappy_encode(bytes(out))


def decode_message(buf: bytes) -> Message:
    """Decode a message from its compressed binary form."""
    return _read_message(_Reader(snappy_decode(buf)))


class Frame(list):
    """A batch of messages sent over the wire together."""

    def sort_by_time(self) -> None:
        """Sort the messages by their time, in place."""
        self.sort(key=lambda message: message.time())

    def split(self, max_byte_size: int) -> tuple[Frame, Frame]:
        """Split into a head that stays under the byte budget and the rest."""
        total = 0
        for index, message in enumerate(self):
            size = len(message.payload) + len(message.id) + len(message.channel) + 20
            if total + size >= max_byte_size:
                return Frame(self[:index]), Frame(self[index:])
            total += size
        return Frame(self), Frame()

    def limit(self, n: int) -> None:
        """Keep only the last n messages by time, in place."""
        self.sort_by_time()
        if len(self) > n:
            del self[: len(self) - n]

    def encode(self) -> bytes:
        """Encode the frame into its compressed binary form."""
        out = bytearray()
        _put_uvarint(out, len(self))
        for message in self:
            _write_message(out, message)
        return snappy_encode(bytes(out))


def decode_frame(buf: bytes) -> Frame:
    """Decode a frame from its compressed binary form."""
    reader = _Reader(snappy_decode(buf))
    count = reader.uvarint()
    return Frame(_read_message(reader) for _ in range(count))