import datetime
import random

import pytest

from emitter.message import (
    CodecError,
    Frame,
    Message,
    decode_frame,
    decode_message,
    snappy_decode,
    snappy_encode,
)
from emitter.message_id import new_id
from emitter.ssid import Ssid


def _message(ssid, channel, payload):
    return Message(new_id(ssid), channel.encode(), payload.encode())


def _four_messages():
    return Frame(
        [
            _message((1, 2, 1), "a/b/a/", "hello aba"),
            _message((1, 2, 2), "a/b/b/", "hello abb"),
            _message((1, 2, 3), "a/b/c/", "hello abc"),
            _message((1, 2, 4), "a/b/d/", "hello abd"),
        ]
    )


def test_codec_message_round_trip():
    for i in range(100):
        msg = _message((1, 2, 3), "a/b/c/", f"message number {i}")
        assert decode_message(msg.encode()) == msg


def test_codec_message_with_ttl():
    msg = _message((1, 2, 3), "a/b/c/", "retained")
    msg.ttl = 0xFFFFFFFF
    assert decode_message(msg.encode()) == msg


def test_codec_happy_path():
    frame = Frame(
        [
            _message((1, 2, 3), "a/b/c/", "hello abc"),
            _message((1, 2, 3), "a/b/", "hello ab"),
        ]
    )
    buffer = frame.encode()
    assert len(buffer) >= 65
    assert decode_frame(buffer) == frame


def test_codec_corrupt():
    with pytest.raises(CodecError, match="snappy: corrupt input"):
        decode_frame(bytes([121, 4, 3, 2, 2, 1, 5, 3, 2]))


def test_codec_invalid():
    out = snappy_encode(bytes([121, 4, 3, 2, 2, 1, 5, 3, 2]))
    with pytest.raises(CodecError) as info:
        decode_frame(out)
    assert str(info.value) == "EOF"


def test_new_message():
    m = Message.create(Ssid((1, 2, 3)), b"a/b/c/", b"hello abc")
    assert m.size() == 9
    assert m.ssid() == Ssid((1, 2, 3))
    assert m.contract() == 1
    assert m.stored() is False


def test_message_expires():
    m = Message.create((1, 2, 3), b"a/", b"x")
    m.ttl = 30
    created = datetime.datetime.fromtimestamp(m.time(), tz=datetime.timezone.utc)
    assert m.expires() - created == datetime.timedelta(seconds=30)
    assert m.stored() is True


def test_frame_limit():
    f = _four_messages()
    f.limit(2)
    assert len(f) == 2
    assert f[0].channel == b"a/b/c/"
    assert f[1].channel == b"a/b/d/"


def test_frame_limit_larger_than_size():
    f = _four_messages()
    f.limit(10)
    assert [m.channel for m in f] == [b"a/b/a/", b"a/b/b/", b"a/b/c/", b"a/b/d/"]


def test_frame_split():
    head, tail = _four_messages().split(127)
    assert len(head) == 2
    assert len(tail) == 2
    assert tail[0].channel == b"a/b/c/"


def test_frame_split_empty():
    head, tail = Frame().split(127)
    assert len(head) == 0
    assert len(tail) == 0


def test_frame_empty_round_trip():
    assert decode_frame(Frame().encode()) == Frame()


def test_snappy_pinned_values():
    assert snappy_encode(b"") == b"\x00"
    assert snappy_encode(b"abc") == b"\x03\x08abc"
    assert snappy_decode(b"\x0a\x00a\x15\x01") == b"a" * 10


def test_snappy_length_mismatch_is_corrupt():
    with pytest.raises(CodecError, match="corrupt"):
        snappy_decode(b"\x05\x08abc")


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"x",
        b"hello world, hello world, hello world!",
        b"a" * 1000,
        bytes(range(256)) * 10,
        b"tweet/canada/english/" * 5000,
        random.Random(7).randbytes(70000),
    ],
)
def test_snappy_round_trip(data):
    assert snappy_decode(snappy_encode(data)) == data


def test_snappy_compresses_repetition():
    assert len(snappy_encode(b"a" * 1000)) < 100