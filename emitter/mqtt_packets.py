"""MQTT control packets and their wire encoding."""

from __future__ import annotations

import abc
import dataclasses
import enum
import struct
from typing import BinaryIO, ClassVar

MAX_HEADER_SIZE = 6
MAX_MESSAGE_SIZE = 65536


class MessageTooLargeError(ValueError):
    """Raised when a packet is larger than an MQTT frame can carry."""

    def __init__(self, message: str = "mqtt: message size exceeds 64K") -> None:
        super().__init__(message)


class BadPacketError(ValueError):
    """Raised when a packet cannot be decoded."""

    def __init__(self, message: str = "mqtt: bad packet") -> None:
        super().__init__(message)


class PacketType(enum.IntEnum):
    """The MQTT control packet types."""

    CONNECT = 1
    CONNACK = 2
    PUBLISH = 3
    PUBACK = 4
    PUBREC = 5
    PUBREL = 6
    PUBCOMP = 7
    SUBSCRIBE = 8
    SUBACK = 9
    UNSUBSCRIBE = 10
    UNSUBACK = 11
    PINGREQ = 12
    PINGRESP = 13
    DISCONNECT = 14


@dataclasses.dataclass(frozen=True)
class Header:
    """The flags of the fixed header."""

    dup: bool = False
    retain: bool = False
    qos: int = 0


@dataclasses.dataclass
class TopicQos:
    """A topic paired with a quality of service level."""

    qos: int = 0
    topic: bytes = b""


def encode_length(body_length: int) -> tuple[int, int]:
    """Encode a remaining length; return (number of bytes, bytes packed big-endian)."""
    if body_length == 0:
        return 1, 0
    bit_field = 0
    num_bytes = 0
    while body_length > 0:
        bit_field <<= 8
        digit = body_length % 128
        body_length //= 128
        if body_length > 0:
            digit |= 0x80
        bit_field |= digit
        num_bytes += 1
    return num_bytes, bit_field


def _uint16(value: int) -> bytes:
    return struct.pack(">H", value & 0xFFFF)


def _string(value: bytes) -> bytes:
    if len(value) > 0xFFFF:
        raise MessageTooLargeError()
    return _uint16(len(value)) + bytes(value)


def _flag(value: bool, bit: int) -> int:
    return (1 << bit) if value else 0


class Packet(abc.ABC):
    """Base class of every MQTT control packet."""

    packet_type: ClassVar[PacketType]
    name: ClassVar[str]

    @property
    def type(self) -> PacketType:
        """The MQTT packet type."""
        return self.packet_type

    def __str__(self) -> str:
        return self.name

    def _header(self) -> Header | None:
        return None

    @abc.abstractmethod
    def _body(self) -> bytes:
        """Return the variable header and payload."""

    def encode(self) -> bytes:
        """Return the packet as bytes ready for the wire."""
        body = self._body()
        first = self.packet_type << 4
        header = self._header()
        if header is not None:
            first |= _flag(header.dup, 3) | ((header.qos & 0x03) << 1) | _flag(header.retain, 0)
        num_bytes, bit_field = encode_length(len(body))
        return bytes((first & 0xFF,)) + bit_field.to_bytes(num_bytes, "big") + body

    def encode_to(self, writer: BinaryIO) -> int:
        """Write the encoded packet and return the number of bytes written."""
        data = self.encode()
        written = writer.write(data)
        return len(data) if written is None else written


@dataclasses.dataclass
class Connect(Packet):
    """A CONNECT packet."""

    packet_type: ClassVar[PacketType] = PacketType.CONNECT
    name: ClassVar[str] = "connect"

    proto_name: bytes = b""
    version: int = 0
    username_flag: bool = False
    password_flag: bool = False
    will_retain_flag: bool = False
    will_qos: int = 0
    will_flag: bool = False
    clean_session_flag: bool = False
    keep_alive: int = 0
    client_id: bytes = b""
    will_topic: bytes = b""
    will_message: bytes = b""
    username: bytes = b""
    password: bytes = b""

    def _body(self) -> bytes:
        flags = (
            _flag(self.username_flag, 7)
            | _flag(self.password_flag, 6)
            | _flag(self.will_retain_flag, 5)
            | ((self.will_qos << 3) & 0xFF)
            | _flag(self.will_flag, 2)
            | _flag(self.clean_session_flag, 1)
        )
        parts = [
            _string(self.proto_name),
            bytes((self.version & 0xFF, flags & 0xFF)),
            _uint16(self.keep_alive),
            _string(self.client_id),
        ]
        if self.will_flag:
            parts += [_string(self.will_topic), _string(self.will_message)]
        if self.username_flag:
            parts.append(_string(self.username))
        if self.password_flag:
            parts.append(_string(self.password))
        return b"".join(parts)


@dataclasses.dataclass
class Connack(Packet):
    """A CONNACK packet carrying the connection return code."""

    packet_type: ClassVar[PacketType] = PacketType.CONNACK
    name: ClassVar[str] = "connack"

    return_code: int = 0

    def _body(self) -> bytes:
        return bytes((0, self.return_code & 0xFF))


@dataclasses.dataclass
class Publish(Packet):
    """A PUBLISH packet."""

    packet_type: ClassVar[PacketType] = PacketType.PUBLISH
    name: ClassVar[str] = "pub"

    header: Header = dataclasses.field(default_factory=Header)
    topic: bytes = b""
    message_id: int = 0
    payload: bytes = b""

    def _header(self) -> Header | None:
        return self.header

    def _body(self) -> bytes:
        length = 2 + len(self.topic) + len(self.payload)
        if self.header.qos > 0:
            length += 2
        if length > MAX_MESSAGE_SIZE:
            raise MessageTooLargeError()
        message_id = _uint16(self.message_id) if self.header.qos > 0 else b""
        return _string(self.topic) + message_id + bytes(self.payload)


@dataclasses.dataclass
class Puback(Packet):
    """A PUBACK packet acknowledging a QoS 1 publish."""

    packet_type: ClassVar[PacketType] = PacketType.PUBACK
    name: ClassVar[str] = "puback"

    message_id: int = 0

    def _body(self) -> bytes:
        return _uint16(self.message_id)


@dataclasses.dataclass
class Pubrec(Packet):
    """A PUBREC packet, the second step of a QoS 2 flow."""

    packet_type: ClassVar[PacketType] = PacketType.PUBREC
    name: ClassVar[str] = "pubrec"

    message_id: int = 0

    def _body(self) -> bytes:
        return _uint16(self.message_id)


@dataclasses.dataclass
class Pubrel(Packet):
    """A PUBREL packet answering a PUBREC."""

    packet_type: ClassVar[PacketType] = PacketType.PUBREL
    name: ClassVar[str] = "pubrel"

    message_id: int = 0
    header: Header = dataclasses.field(default_factory=Header)

    def _header(self) -> Header | None:
        return self.header

    def _body(self) -> bytes:
        return _uint16(self.message_id)


@dataclasses.dataclass
class Pubcomp(Packet):
    """A PUBCOMP packet, the final step of a QoS 2 flow."""

    packet_type: ClassVar[PacketType] = PacketType.PUBCOMP
    name: ClassVar[str] = "pubcomp"

    message_id: int = 0

    def _body(self) -> bytes:
        return _uint16(self.message_id)


@dataclasses.dataclass
class Subscribe(Packet):
    """A SUBSCRIBE packet listing topics and requested QoS levels."""

    packet_type: ClassVar[PacketType] = PacketType.SUBSCRIBE
    name: ClassVar[str] = "sub"

    header: Header = dataclasses.field(default_factory=Header)
    message_id: int = 0
    subscriptions: list[TopicQos] = dataclasses.field(default_factory=list)

    def _header(self) -> Header | None:
        return self.header

    def _body(self) -> bytes:
        return _uint16(self.message_id) + b"".join(
            _string(t.topic) + bytes((t.qos & 0xFF,)) for t in self.subscriptions
        )


@dataclasses.dataclass
class Suback(Packet):
    """A SUBACK packet with the granted QoS levels."""

    packet_type: ClassVar[PacketType] = PacketType.SUBACK
    name: ClassVar[str] = "suback"

    message_id: int = 0
    qos: list[int] = dataclasses.field(default_factory=list)

    def _body(self) -> bytes:
        return _uint16(self.message_id) + bytes(q & 0xFF for q in self.qos)


@dataclasses.dataclass
class Unsubscribe(Packet):
    """An UNSUBSCRIBE packet listing topics."""

    packet_type: ClassVar[PacketType] = PacketType.UNSUBSCRIBE
    name: ClassVar[str] = "unsub"

    header: Header = dataclasses.field(default_factory=Header)
    message_id: int = 0
    topics: list[TopicQos] = dataclasses.field(default_factory=list)

    def _header(self) -> Header | None:
        return self.header

    def _body(self) -> bytes:
        return _uint16(self.message_id) + b"".join(_string(t.topic) for t in self.topics)


@dataclasses.dataclass
class Unsuback(Packet):
    """An UNSUBACK packet."""

    packet_type: ClassVar[PacketType] = PacketType.UNSUBACK
    name: ClassVar[str] = "unsuback"

    message_id: int = 0

    def _body(self) -> bytes:
        return _uint16(self.message_id)


@dataclasses.dataclass
class Pingreq(Packet):
    """A PINGREQ keep-alive packet."""

    packet_type: ClassVar[PacketType] = PacketType.PINGREQ
    name: ClassVar[str] = "pingreq"

    def _body(self) -> bytes:
        return b""


@dataclasses.dataclass
class Pingresp(Packet):
    """A PINGRESP packet."""

    packet_type: ClassVar[PacketType] = PacketType.PINGRESP
    name: ClassVar[str] = "pingresp"

    def _body(self) -> bytes:
        return b""


@dataclasses.dataclass
class Disconnect(Packet):
    """A DISCONNECT packet."""

    packet_type: ClassVar[PacketType] = PacketType.DISCONNECT
    name: ClassVar[str] = "disconnect"

    def _body(self) -> bytes:
        return b""