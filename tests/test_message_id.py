import struct

from emitter.message_id import TIME_OFFSET, MessageId, new_id, new_prefix
from emitter.ssid import SHARE, Ssid

MAX_INT64 = 2**63 - 1
FAR_FUTURE = 2527784701635600500


def test_new_id_time_and_with_time():
    ident = new_id(Ssid((1, SHARE, 3)))
    assert ident.time() > 1527819700

    changed = ident.with_time(TIME_OFFSET + 1)
    assert isinstance(changed, MessageId)
    assert changed.time() == TIME_OFFSET + 1
    assert changed[8:] == ident[8:]


def test_new_id_layout():
    ident = new_id(Ssid((1, 2, 3)))
    assert len(ident) == 16 + 3 * 4
    assert struct.unpack(">I", ident[:4])[0] == 1 ^ 2


def test_new_id_sequence_descends():
    first = new_id(Ssid((1, 2)))
    second = new_id(Ssid((1, 2)))
    assert first != second
    assert first[12:16] == second[12:16]


def test_has_prefix():
    ident = new_id(Ssid((1, 2, 3)))
    assert ident.has_prefix(Ssid((1, 2)), 0) is True
    assert ident.has_prefix(Ssid((1, 2)), FAR_FUTURE) is False
    assert ident.has_prefix(Ssid((1, 3)), 0) is False


def test_match():
    ident = new_id(Ssid((1, 2, 3, 4)))
    assert len(ident) > 0
    assert ident.match(Ssid((1, 2, 3, 4)), 0, MAX_INT64)
    assert ident.match(Ssid((1, 2, 3)), 0, MAX_INT64)
    assert ident.match(Ssid((1, 2)), 0, MAX_INT64)
    assert not ident.match(Ssid((1, 2, 3, 5)), 0, MAX_INT64)
    assert not ident.match(Ssid((1, 5)), 0, MAX_INT64)
    assert ident.match(Ssid((1, 2)), 0, FAR_FUTURE)
    assert not ident.match(Ssid((1, 2)), FAR_FUTURE, MAX_INT64)
    assert not ident.match(Ssid((2, 2, 3, 4)), 0, MAX_INT64)
    assert not ident.match(Ssid((2, 2, 3, 4, 5)), 0, MAX_INT64)


def test_match_wildcard():
    from emitter.ssid import WILDCARD

    ident = new_id(Ssid((1, 2, 3, 4)))
    assert ident.match(Ssid((1, WILDCARD, 3)), 0, MAX_INT64)
    assert not ident.match(Ssid((1, WILDCARD, 5)), 0, MAX_INT64)


def test_ssid_and_contract():
    original = Ssid((1, 2, 3, 4, 5, 6))
    ident = new_id(original)
    assert ident.contract() == original[0]
    assert ident.ssid() == original
    assert isinstance(ident.ssid(), Ssid)